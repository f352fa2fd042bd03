"""Poll 入口适配器 -- 周期性全量对账

webhook 投递不可靠时由轮询兜底。每次 tick：
1. 列出带触发标签、未删除、未完成的任务
2. 边界之后创建且无会话 -> TaskCreated
3. 边界之前创建且无会话 -> 直接标记为已见（空会话，created_at = 任务创建时间）
4. 已有会话 -> 拉取评论，去掉已处理与保留前缀的评论，按 posted_at 升序逐条产出
整轮完成后才把边界推进到本轮开始时间。
"""

import asyncio
from datetime import UTC, datetime

import structlog
from taskrelay.core.config import is_reserved_reply
from taskrelay.core.dedup import EventDeduplicator
from taskrelay.core.models import (
    CommentPostedEvent,
    Conversation,
    EventSource,
    TaskCreatedEvent,
    TrackerComment,
    TrackerTask,
)
from taskrelay.core.store import ConversationStore
from taskrelay.tracker import TrackerClient, TrackerError

from .event_router import EventRouter
from .job_scheduler import JobScheduler

log = structlog.get_logger()

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def _aware(dt: datetime) -> datetime:
    """无时区的时间按 UTC 处理"""
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=UTC)


class PollReconciler:
    """轮询对账器"""

    def __init__(
        self,
        tracker: TrackerClient,
        store: ConversationStore,
        dedup: EventDeduplicator,
        router: EventRouter,
        scheduler: JobScheduler,
        trigger_label: str,
        interval_s: float = 60,
        backfill: bool = True,
    ) -> None:
        """
        Args:
            backfill: True 时初始边界为 epoch（首轮处理所有无会话的任务），
                False 时为进程启动时间（启动前的任务只标记为已见）
        """
        self._tracker = tracker
        self._store = store
        self._dedup = dedup
        self._router = router
        self._scheduler = scheduler
        self._trigger_label = trigger_label
        self._interval_s = interval_s
        self._boundary = EPOCH if backfill else datetime.now(UTC)
        self._tick_pending = False
        self._loop_task: asyncio.Task | None = None

    @property
    def boundary(self) -> datetime:
        """上一轮完整对账的开始时间"""
        return self._boundary

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    async def tick(self) -> int:
        """执行一轮对账

        Returns:
            本轮入队的事件数

        Raises:
            TrackerError: 任务列表获取失败（边界不推进）
        """
        pass_start = datetime.now(UTC)
        tasks = await self._tracker.list_tasks()
        candidates = [
            t
            for t in tasks
            if t.has_label(self._trigger_label) and not t.is_deleted and not t.checked
        ]

        dispatched = 0
        for task in candidates:
            dispatched += await self._reconcile_task(task)

        self._boundary = pass_start
        log.info(
            "poll_tick_completed",
            tasks=len(candidates),
            dispatched=dispatched,
            boundary=pass_start.isoformat(),
        )
        return dispatched

    async def _reconcile_task(self, task: TrackerTask) -> int:
        if not await self._store.exists(task.id):
            if _aware(task.added_at) > self._boundary:
                await self._router.dispatch(
                    TaskCreatedEvent(source=EventSource.POLL, task=task)
                )
                return 1
            await self._mark_seen(task)
            return 0

        dispatched = 0
        for comment in await self._new_comments(task.id):
            queued = await self._router.dispatch(
                CommentPostedEvent(
                    source=EventSource.POLL,
                    task_id=task.id,
                    comment_id=comment.id,
                    author=comment.posted_uid,
                    text=comment.content,
                    posted_at=comment.posted_at,
                )
            )
            dispatched += int(queued)
        return dispatched

    async def _mark_seen(self, task: TrackerTask) -> None:
        """旧任务只记录空会话，不调用助手"""
        await self._store.save(
            task.id,
            Conversation(title=task.content, created_at=task.added_at),
        )
        log.info("poll_task_marked_seen", task_id=task.id)

    async def _new_comments(self, task_id: str) -> list[TrackerComment]:
        try:
            comments = await self._tracker.get_comments(task_id)
        except TrackerError as e:
            log.error("poll_comments_fetch_failed", task_id=task_id, error=str(e))
            return []

        fresh = [
            c
            for c in comments
            if not self._dedup.seen_comment(c.id) and not is_reserved_reply(c.content)
        ]
        fresh.sort(key=lambda c: _aware(c.posted_at))
        if fresh:
            log.info("poll_new_comments", task_id=task_id, count=len(fresh))
        return fresh

    # ============================================================
    # 周期调度
    # ============================================================

    def schedule_tick(self) -> str | None:
        """入队一次 tick；上一次 tick 尚未执行完时跳过

        Returns:
            job_id；跳过时返回 None
        """
        if self._tick_pending:
            log.debug("poll_tick_skipped")
            return None
        self._tick_pending = True
        return self._scheduler.enqueue(self._run_tick, name="poll_tick")

    async def _run_tick(self) -> None:
        try:
            await self.tick()
        finally:
            self._tick_pending = False

    async def run_forever(self) -> None:
        """每个间隔入队一次 tick，启动时立即执行第一次"""
        log.info("poller_started", interval_s=self._interval_s)
        while True:
            self.schedule_tick()
            await asyncio.sleep(self._interval_s)

    def start(self) -> None:
        if self.running:
            return
        self._loop_task = asyncio.create_task(self.run_forever(), name="taskrelay-poller")

    async def stop(self) -> None:
        if self._loop_task is None:
            return
        self._loop_task.cancel()
        try:
            await self._loop_task
        except asyncio.CancelledError:
            pass
        self._loop_task = None
        log.info("poller_stopped")
