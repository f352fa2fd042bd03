"""EventDeduplicator -- 至多一次处理的准入闸门

两个命名空间：
- 任务级：由会话是否存在推导（随会话持久化）
- 评论级：进程内、有上限、FIFO 淘汰的评论 ID 集合（重启后清空）
"""

from collections import OrderedDict

import structlog

from .config import COMMENT_DEDUP_CEILING, COMMENT_DEDUP_EVICT_RATIO
from .models.enums import EventKind
from .models.event import NormalizedEvent
from .store.protocols import ConversationStore

log = structlog.get_logger()


class CommentLedger:
    """已处理评论 ID 集合

    超过上限后一次淘汰最旧的一批（默认 10%），不需要逐条记录时间戳。
    """

    def __init__(
        self,
        ceiling: int = COMMENT_DEDUP_CEILING,
        evict_ratio: float = COMMENT_DEDUP_EVICT_RATIO,
    ) -> None:
        if ceiling < 1:
            raise ValueError(f"ceiling must be at least 1, got {ceiling}")
        self._ceiling = ceiling
        self._evict_count = max(1, int(ceiling * evict_ratio))
        self._ids: OrderedDict[str, None] = OrderedDict()

    def __contains__(self, comment_id: str) -> bool:
        return comment_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def add(self, comment_id: str) -> bool:
        """记录评论 ID

        Returns:
            True 如果是新 ID，False 如果已记录过
        """
        if comment_id in self._ids:
            return False
        self._ids[comment_id] = None
        if len(self._ids) > self._ceiling:
            self._evict_oldest()
        return True

    def _evict_oldest(self) -> None:
        for _ in range(min(self._evict_count, len(self._ids))):
            self._ids.popitem(last=False)
        log.info(
            "comment_ledger_evicted",
            evicted=self._evict_count,
            remaining=len(self._ids),
        )


class EventDeduplicator:
    """事件准入判断

    - TASK_CREATED / TASK_RELABELED: 会话不存在时准入；准入后由 engine
      在同一个 job 内创建会话以关闭窗口
    - COMMENT_POSTED: 评论 ID 未记录时准入，准入即记录
    - TASK_COMPLETED: 总是准入（完成处理本身幂等）
    """

    def __init__(
        self,
        store: ConversationStore,
        ledger: CommentLedger | None = None,
    ) -> None:
        self._store = store
        self._ledger = ledger or CommentLedger()

    @property
    def ledger(self) -> CommentLedger:
        return self._ledger

    def seen_comment(self, comment_id: str) -> bool:
        """评论是否已被处理过（不记录）"""
        return comment_id in self._ledger

    async def admit(self, event: NormalizedEvent) -> bool:
        """判断事件是否允许进入 engine

        Args:
            event: 标准化事件

        Returns:
            True 表示准入
        """
        if event.kind in (EventKind.TASK_CREATED, EventKind.TASK_RELABELED):
            admitted = not await self._store.exists(event.task_id)
        elif event.kind == EventKind.COMMENT_POSTED:
            admitted = self._ledger.add(event.comment_id)
        else:
            admitted = True

        if not admitted:
            log.info(
                "event_deduplicated",
                kind=event.kind,
                task_id=event.task_id,
                source=event.source,
            )
        return admitted
