"""TraceMiddleware -- 任务级追踪

会话查询路由 /api/conversations/{task_id} 绑定 trace_id，
与 engine 日志中的 task_id 对应。
"""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

_CONVERSATIONS_PREFIX = "/api/conversations/"


class TraceMiddleware(BaseHTTPMiddleware):
    """任务级追踪中间件 -- 为会话查询绑定 trace_id"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path.startswith(_CONVERSATIONS_PREFIX):
            task_id = path[len(_CONVERSATIONS_PREFIX) :].split("/", 1)[0]
            if task_id:
                structlog.contextvars.bind_contextvars(
                    task_id=task_id,
                    trace_id=f"trace-{task_id}",
                )

        return await call_next(request)
