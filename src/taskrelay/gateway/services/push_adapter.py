"""Push 入口适配器 -- Todoist webhook payload -> NormalizedEvent

过滤规则：
- item:added / item:updated 需带触发标签；item:updated 仅在会话不存在时产出
- note:added 需不带保留前缀（防回环），且任务带触发标签（payload 不含标签，需查询）
- item:completed 需任务带触发标签
未知事件或缺少字段时记录 warning 并返回 None，不抛出。
"""

from typing import Any

import structlog
from pydantic import BaseModel, Field, ValidationError
from taskrelay.core.config import is_reserved_reply
from taskrelay.core.models import (
    CommentPostedEvent,
    EventSource,
    NormalizedEvent,
    PushEventName,
    TaskCompletedEvent,
    TaskCreatedEvent,
    TaskRelabeledEvent,
    TrackerComment,
    TrackerTask,
)
from taskrelay.core.store import ConversationStore
from taskrelay.tracker import TrackerClient

log = structlog.get_logger()


class WebhookEnvelope(BaseModel):
    """Todoist webhook 请求体"""

    event_name: str = Field(description="事件类型，如 item:added")
    event_data: dict[str, Any] = Field(default_factory=dict, description="事件数据")


def parse_envelope(body: bytes) -> WebhookEnvelope | None:
    """解析 webhook 原始请求体；格式错误时返回 None"""
    try:
        return WebhookEnvelope.model_validate_json(body)
    except ValidationError as e:
        log.warning("webhook_malformed_body", error_count=e.error_count(), size=len(body))
        return None


class PushEventNormalizer:
    """webhook 事件标准化"""

    def __init__(
        self,
        tracker: TrackerClient,
        store: ConversationStore,
        trigger_label: str,
    ) -> None:
        self._tracker = tracker
        self._store = store
        self._trigger_label = trigger_label

    async def normalize(self, envelope: WebhookEnvelope) -> NormalizedEvent | None:
        """将 webhook 事件转换为 NormalizedEvent

        Returns:
            NormalizedEvent；被过滤或无法解析时返回 None
        """
        try:
            name = PushEventName(envelope.event_name)
        except ValueError:
            log.warning("push_unknown_event", event_name=envelope.event_name)
            return None

        data = envelope.event_data
        try:
            if name == PushEventName.ITEM_ADDED:
                return self._task_created(data)
            if name == PushEventName.ITEM_UPDATED:
                return await self._task_relabeled(data)
            if name == PushEventName.NOTE_ADDED:
                return await self._comment_posted(data)
            return await self._task_completed(data)
        except ValidationError as e:
            log.warning(
                "push_event_malformed",
                event_name=envelope.event_name,
                errors=[err["loc"] for err in e.errors()],
            )
            return None

    def _task_created(self, data: dict[str, Any]) -> TaskCreatedEvent | None:
        task = TrackerTask.model_validate(data)
        if not task.has_label(self._trigger_label):
            log.debug("push_task_unlabeled", task_id=task.id)
            return None
        return TaskCreatedEvent(source=EventSource.PUSH, task=task)

    async def _task_relabeled(self, data: dict[str, Any]) -> TaskRelabeledEvent | None:
        task = TrackerTask.model_validate(data)
        if not task.has_label(self._trigger_label):
            log.debug("push_task_unlabeled", task_id=task.id)
            return None
        if await self._store.exists(task.id):
            log.debug("push_task_already_known", task_id=task.id)
            return None
        return TaskRelabeledEvent(source=EventSource.PUSH, task=task)

    async def _comment_posted(self, data: dict[str, Any]) -> CommentPostedEvent | None:
        comment = TrackerComment.model_validate(data)
        if is_reserved_reply(comment.content):
            log.debug("push_own_reply_ignored", comment_id=comment.id)
            return None
        if not await self._tracker.has_label(comment.task_id, self._trigger_label):
            log.debug("push_comment_task_unlabeled", task_id=comment.task_id)
            return None
        return CommentPostedEvent(
            source=EventSource.PUSH,
            task_id=comment.task_id,
            comment_id=comment.id,
            author=comment.posted_uid,
            text=comment.content,
            posted_at=comment.posted_at,
        )

    async def _task_completed(self, data: dict[str, Any]) -> TaskCompletedEvent | None:
        if not data.get("id"):
            log.warning("push_event_missing_field", event_name="item:completed", field="id")
            return None
        task_id = str(data["id"])

        labels = data.get("labels")
        if labels is not None:
            labeled = self._trigger_label in labels
        else:
            labeled = await self._tracker.has_label(task_id, self._trigger_label)
        if not labeled:
            log.debug("push_task_unlabeled", task_id=task_id)
            return None
        return TaskCompletedEvent(source=EventSource.PUSH, task_id=task_id)
