"""EventRouter -- 标准化事件的准入与入队

两个入口共用同一条路径：
- CommentPosted: 产出时即准入（记录评论 ID），再入队处理
- TaskCreated / TaskRelabeled: 入队后在执行时准入，
  此时会话是否存在反映的是前一个 job 完成后的状态
- TaskCompleted: 直接入队
"""

from functools import partial

import structlog
from taskrelay.core.dedup import EventDeduplicator
from taskrelay.core.models import EventKind, NormalizedEvent

from .conversation_engine import TaskConversationEngine
from .job_scheduler import JobScheduler
from .push_adapter import PushEventNormalizer, WebhookEnvelope

log = structlog.get_logger()


class EventRouter:
    """事件路由"""

    def __init__(
        self,
        scheduler: JobScheduler,
        dedup: EventDeduplicator,
        engine: TaskConversationEngine,
        push_normalizer: PushEventNormalizer | None = None,
    ) -> None:
        self._scheduler = scheduler
        self._dedup = dedup
        self._engine = engine
        self._push_normalizer = push_normalizer

    async def dispatch(self, event: NormalizedEvent) -> bool:
        """准入并入队一个事件

        Returns:
            True 表示已入队；评论被去重时返回 False
        """
        name = f"{event.source}:{event.kind}:{event.task_id}"
        if event.kind == EventKind.COMMENT_POSTED:
            if not await self._dedup.admit(event):
                return False
            self._scheduler.enqueue(partial(self._engine.handle, event), name=name)
        else:
            self._scheduler.enqueue(partial(self._admit_and_handle, event), name=name)
        log.debug("event_dispatched", kind=event.kind, task_id=event.task_id)
        return True

    async def _admit_and_handle(self, event: NormalizedEvent) -> None:
        if await self._dedup.admit(event):
            await self._engine.handle(event)

    def route_push(self, envelope: WebhookEnvelope) -> str:
        """将 webhook 事件的标准化与处理整体入队

        webhook 响应不等待 tracker 查询，标准化在 job 中完成。

        Returns:
            job_id
        """
        if self._push_normalizer is None:
            raise RuntimeError("push normalizer is not configured")
        return self._scheduler.enqueue(
            partial(self._normalize_and_dispatch, envelope),
            name=f"push:{envelope.event_name}",
        )

    async def _normalize_and_dispatch(self, envelope: WebhookEnvelope) -> None:
        event = await self._push_normalizer.normalize(envelope)
        if event is not None:
            await self.dispatch(event)
