"""FastAPI 应用主文件

app 创建 + lifespan 管理：配置加载、会话存储、Todoist 客户端、
助手服务、JobScheduler、轮询器的初始化与关闭。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from pydantic import ValidationError
from taskrelay.core.config import RelayConfig, get_store_path, load_relay_config
from taskrelay.core.dedup import EventDeduplicator
from taskrelay.core.exceptions import ConfigError
from taskrelay.core.store import ConversationStore, create_conversation_store
from taskrelay.provider import create_assistant_client, load_assistant_config
from taskrelay.tracker import TrackerClient

from .middleware.logging_config import setup_logfire, setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .middleware.trace_mw import TraceMiddleware
from .routes import conversations, health, webhook
from .services.assistant_service import AssistantService
from .services.conversation_engine import TaskConversationEngine
from .services.event_router import EventRouter
from .services.job_scheduler import JobScheduler
from .services.notification_service import NotificationService
from .services.poll_adapter import PollReconciler
from .services.push_adapter import PushEventNormalizer

log = structlog.get_logger()


def wire_services(
    app: FastAPI,
    relay_config: RelayConfig,
    store: ConversationStore,
    tracker: TrackerClient,
    assistant_service: AssistantService,
) -> None:
    """组装运行时组件并挂到 app.state（不启动后台任务）"""
    scheduler = JobScheduler()
    dedup = EventDeduplicator(store)
    notifier = NotificationService(relay_config.notify_url) if relay_config.notify_url else None
    engine = TaskConversationEngine(
        store=store,
        tracker=tracker,
        assistant=assistant_service,
        max_messages=relay_config.max_messages,
        notifier=notifier,
    )
    event_router = EventRouter(
        scheduler=scheduler,
        dedup=dedup,
        engine=engine,
        push_normalizer=PushEventNormalizer(tracker, store, relay_config.trigger_label),
    )
    poller = PollReconciler(
        tracker=tracker,
        store=store,
        dedup=dedup,
        router=event_router,
        scheduler=scheduler,
        trigger_label=relay_config.trigger_label,
        interval_s=relay_config.poll_interval_s,
        backfill=relay_config.poll_backfill,
    )

    app.state.relay_config = relay_config
    app.state.store = store
    app.state.tracker = tracker
    app.state.assistant_service = assistant_service
    app.state.scheduler = scheduler
    app.state.dedup = dedup
    app.state.engine = engine
    app.state.event_router = event_router
    app.state.poller = poller


async def shutdown_services(app: FastAPI, drain_timeout: float = 10.0) -> None:
    """停止轮询、排空队列、关闭连接"""
    state = app.state
    if getattr(state, "poller", None) is not None:
        await state.poller.stop()
    if getattr(state, "scheduler", None) is not None:
        await state.scheduler.stop(timeout=drain_timeout)
    if getattr(state, "tracker", None) is not None:
        await state.tracker.close()
    if getattr(state, "store", None) is not None:
        await state.store.close()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时组装并启动组件，关闭时排空队列并清理"""
    relay_config = load_relay_config()
    try:
        assistant_config = load_assistant_config()
    except ValidationError as e:
        raise ConfigError(f"invalid assistant configuration: {e}") from e

    store_path = get_store_path(relay_config.store_backend)
    store = await create_conversation_store(relay_config.store_backend, store_path)
    tracker = TrackerClient(relay_config.tracker_api_token.get_secret_value())
    assistant_service = AssistantService(
        client=create_assistant_client(assistant_config),
        timeout_s=assistant_config.timeout_s,
        model_alias=assistant_config.model_alias,
    )

    wire_services(app, relay_config, store, tracker, assistant_service)
    app.state.scheduler.start()
    app.state.poller.start()

    log.info(
        "taskrelay_started",
        port=relay_config.port,
        store_backend=relay_config.store_backend,
        store_path=store_path,
        assistant_mode=assistant_config.mode,
        trigger_label=relay_config.trigger_label,
        poll_interval_s=relay_config.poll_interval_s,
    )

    yield

    await shutdown_services(app)
    log.info("taskrelay_stopped")


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="TaskRelay",
        version="0.1.0",
        description="Todoist 任务事件到 AI 助手的中继服务",
        lifespan=lifespan,
    )

    # 注册中间件（顺序：先 Trace 后 Logging）
    app.add_middleware(TraceMiddleware)
    app.add_middleware(LoggingMiddleware)

    setup_logging()
    setup_logfire(app)

    app.include_router(webhook.router, tags=["webhook"])
    app.include_router(conversations.router, tags=["conversations"])
    app.include_router(health.router, tags=["health"])

    return app
