"""gateway 测试配置 -- 组件组装 + FastAPI app（绕过 lifespan）"""


from collections.abc import AsyncGenerator


import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from taskrelay.core.config import RelayConfig
from taskrelay.core.dedup import EventDeduplicator
from taskrelay.gateway.services.conversation_engine import TaskConversationEngine
from taskrelay.gateway.services.event_router import EventRouter
from taskrelay.gateway.services.job_scheduler import JobScheduler
from taskrelay.gateway.services.poll_adapter import PollReconciler
from taskrelay.gateway.services.push_adapter import PushEventNormalizer


@pytest.fixture
def relay_config() -> RelayConfig:
    return RelayConfig(tracker_api_token="tok-test", webhook_secret="whsec-test")


@pytest_asyncio.fixture
async def scheduler() -> AsyncGenerator[JobScheduler, None]:
    """已启动的 JobScheduler，测试结束时排空并停止"""
    sched = JobScheduler()
    sched.start()
    yield sched
    await sched.stop(timeout=2)


@pytest.fixture
def dedup(json_store) -> EventDeduplicator:
    return EventDeduplicator(json_store)


@pytest.fixture
def engine(json_store, fake_tracker, fake_assistant) -> TaskConversationEngine:
    return TaskConversationEngine(json_store, fake_tracker, fake_assistant, max_messages=20)


@pytest.fixture
def event_router(scheduler, dedup, engine, fake_tracker, json_store) -> EventRouter:
    return EventRouter(
        scheduler,
        dedup,
        engine,
        push_normalizer=PushEventNormalizer(fake_tracker, json_store, "AI"),
    )


@pytest.fixture
def make_poller(fake_tracker, json_store, dedup, event_router, scheduler):
    """PollReconciler 工厂，默认不回补启动前任务"""

    def _make(
        backfill: bool = False,
        job_scheduler: JobScheduler | None = None,
    ) -> PollReconciler:
        return PollReconciler(
            tracker=fake_tracker,
            store=json_store,
            dedup=dedup,
            router=event_router,
            scheduler=job_scheduler or scheduler,
            trigger_label="AI",
            interval_s=3600,
            backfill=backfill,
        )

    return _make


@pytest_asyncio.fixture
async def app(monkeypatch, relay_config, json_store, fake_tracker, fake_assistant):
    """测试用 app：手动组装组件，不启动后台任务"""
    monkeypatch.setenv("LOGFIRE_SEND_TO_LOGFIRE", "false")

    from taskrelay.gateway.main import create_app, shutdown_services, wire_services

    application = create_app()
    wire_services(application, relay_config, json_store, fake_tracker, fake_assistant)
    yield application
    await shutdown_services(application, drain_timeout=2)


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
