"""健康检查路由

GET /health: Liveness 检查，永远返回 200 + 当前时间。
GET /ready: Readiness 检查，包含会话存储、任务队列、轮询器状态。
         profile=llm/full 时额外探测助手后端。
"""

from datetime import UTC, datetime

import structlog
from fastapi import APIRouter, Query, Request
from starlette.responses import JSONResponse

log = structlog.get_logger()

router = APIRouter()


@router.get("/health")
async def health():
    """Liveness 检查 -- 永远返回 200"""
    return {"status": "ok", "timestamp": datetime.now(UTC).isoformat()}


@router.get("/ready")
async def ready(
    request: Request,
    profile: str | None = Query(
        default=None,
        description="检查配置文件：core（默认）仅核心检查；llm/full 包含助手后端探测",
    ),
):
    """Readiness 检查 -- 验证核心组件可用性

    检查项：
    1. store: 会话存储可读
    2. scheduler: worker 运行中（附带排队数）
    3. poller: 轮询循环运行中
    4. assistant: 根据 profile 决定是否探测
    """
    effective_profile = profile or "core"
    state = request.app.state

    checks: dict = {}
    all_ok = True

    # 1. 会话存储
    try:
        conversations = await state.store.list_conversations()
        checks["store"] = "ok"
        checks["conversations"] = len(conversations)
    except Exception as e:
        checks["store"] = f"error: {e}"
        all_ok = False

    # 2. 任务队列
    scheduler = getattr(state, "scheduler", None)
    if scheduler is not None and scheduler.running:
        checks["scheduler"] = "ok"
        checks["pending_jobs"] = scheduler.pending
    else:
        checks["scheduler"] = "stopped"
        all_ok = False

    # 3. 轮询器
    poller = getattr(state, "poller", None)
    if poller is not None and poller.running:
        checks["poller"] = "ok"
        checks["poll_boundary"] = poller.boundary.isoformat()
    else:
        checks["poller"] = "stopped"
        all_ok = False

    # 4. 助手后端
    if effective_profile in ("llm", "full"):
        assistant = getattr(state, "assistant_service", None)
        try:
            healthy = assistant is not None and await assistant.health_check()
        except Exception as e:
            log.warning("health_check_error", error=str(e))
            healthy = False
        checks["assistant"] = "ok" if healthy else "unreachable"
        all_ok = all_ok and healthy
    else:
        checks["assistant"] = "skipped"

    status_code = 200 if all_ok else 503
    status_text = "ready" if all_ok else "not_ready"

    return JSONResponse(
        status_code=status_code,
        content={
            "status": status_text,
            "profile": effective_profile,
            "checks": checks,
        },
    )
