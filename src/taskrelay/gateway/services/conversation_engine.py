"""TaskConversationEngine -- 单任务会话状态机

状态由会话存储推导，不单独持久化：
  UNSEEN --(TaskCreated/TaskRelabeled)--> ACTIVE
  ACTIVE --(CommentPosted)--> ACTIVE
  UNSEEN/ACTIVE --(TaskCompleted)--> COMPLETED（会话删除）

助手调用失败时：保留已写入的 user 消息，不写 assistant 消息，
发布带错误前缀的回复，不向上抛出。存储异常则向上传递到 job 边界。
"""

import structlog
from pydantic import ValidationError
from taskrelay.core.config import (
    AI_INDICATOR,
    COMPLETION_NOTICE,
    ERROR_PREFIX,
    RETRY_HINT,
)
from taskrelay.core.models import (
    CommentPostedEvent,
    Conversation,
    EventKind,
    MessageRole,
    NormalizedEvent,
    TaskCompletedEvent,
    TrackerTask,
    build_anchor_text,
)
from taskrelay.core.store import ConversationStore, append_message
from taskrelay.provider import build_system_context
from taskrelay.tracker import TrackerClient, TrackerError

from .assistant_service import AssistantService
from .notification_service import NotificationPayload, NotificationService

log = structlog.get_logger()


def format_reply(text: str) -> str:
    """助手回复：AI 标记 + 空行 + 正文"""
    return f"{AI_INDICATOR}\n\n{text}"


def format_error(message: str) -> str:
    """错误回复：错误标记 + 诊断信息 + 重试提示"""
    return f"{ERROR_PREFIX} {message}. {RETRY_HINT}"


class TaskConversationEngine:
    """会话状态机"""

    def __init__(
        self,
        store: ConversationStore,
        tracker: TrackerClient,
        assistant: AssistantService,
        max_messages: int = 20,
        notifier: NotificationService | None = None,
    ) -> None:
        self._store = store
        self._tracker = tracker
        self._assistant = assistant
        self._max_messages = max_messages
        self._notifier = notifier

    async def handle(self, event: NormalizedEvent) -> None:
        """处理一个已准入的事件"""
        log.info(
            "engine_handle_event",
            kind=event.kind,
            task_id=event.task_id,
            source=event.source,
        )
        if event.kind in (EventKind.TASK_CREATED, EventKind.TASK_RELABELED):
            await self._start_conversation(event.task)
        elif event.kind == EventKind.COMMENT_POSTED:
            await self._continue_conversation(event)
        elif event.kind == EventKind.TASK_COMPLETED:
            await self._complete(event)
        else:
            log.warning("engine_unroutable_event", kind=event.kind)

    # ============================================================
    # 状态迁移
    # ============================================================

    async def _start_conversation(self, task: TrackerTask) -> None:
        """UNSEEN -> ACTIVE：写入 anchor 并调用助手"""
        conversation = self._with_anchor(Conversation(title=task.content), task)
        # 先落盘关闭准入窗口，同一任务的后续创建事件不再准入
        await self._store.save(task.id, conversation)

        await self._respond(task.id, conversation, task)

    async def _continue_conversation(self, event: CommentPostedEvent) -> None:
        """ACTIVE -> ACTIVE：追加评论并调用助手"""
        try:
            task = await self._tracker.get_task(event.task_id)
        except (TrackerError, ValidationError) as e:
            log.error("engine_task_fetch_failed", task_id=event.task_id, error=str(e))
            await self._post_error(event.task_id, str(e), title="Unknown task")
            return

        conversation = await self._store.load(event.task_id)
        if conversation.is_empty:
            # anchor 缺失（如旧任务仅被标记为已见）时先补写
            conversation = self._with_anchor(conversation, task)

        conversation = append_message(
            conversation,
            MessageRole.USER,
            event.text,
            self._max_messages,
        )
        await self._store.save(event.task_id, conversation)

        await self._respond(event.task_id, conversation, task)

    async def _complete(self, event: TaskCompletedEvent) -> None:
        """-> COMPLETED：非空会话发布结束通知，然后删除会话"""
        conversation = await self._store.load(event.task_id)
        if not conversation.is_empty:
            try:
                await self._tracker.post_comment(
                    event.task_id, format_reply(COMPLETION_NOTICE)
                )
            except TrackerError as e:
                log.error(
                    "engine_completion_notice_failed",
                    task_id=event.task_id,
                    error=str(e),
                )
        await self._store.cleanup(event.task_id)
        log.info(
            "conversation_completed",
            task_id=event.task_id,
            had_history=not conversation.is_empty,
        )

    # ============================================================
    # 内部工具
    # ============================================================

    def _with_anchor(self, conversation: Conversation, task: TrackerTask) -> Conversation:
        conversation = conversation.model_copy(update={"title": task.content})
        return append_message(
            conversation,
            MessageRole.USER,
            build_anchor_text(task.content, task.description),
            self._max_messages,
        )

    async def _respond(
        self,
        task_id: str,
        conversation: Conversation,
        task: TrackerTask,
    ) -> None:
        """调用助手，写入回复并发布；失败时发布错误回复"""
        system_context = build_system_context(task)
        try:
            reply = await self._assistant.invoke(system_context, conversation.history())
        except Exception as e:
            log.error(
                "assistant_failed",
                task_id=task_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            await self._post_error(task_id, str(e), title=task.content)
            return

        conversation = append_message(
            conversation,
            MessageRole.ASSISTANT,
            reply,
            self._max_messages,
        )
        await self._store.save(task_id, conversation)

        try:
            await self._tracker.post_comment(task_id, format_reply(reply))
        except TrackerError as e:
            log.error("engine_reply_post_failed", task_id=task_id, error=str(e))
            await self._post_error(task_id, f"Failed to post reply: {e}", title=task.content)
            return

        log.info(
            "conversation_replied",
            task_id=task_id,
            message_count=len(conversation.messages),
        )
        await self._notify(task.content, "success")

    async def _post_error(self, task_id: str, message: str, title: str) -> None:
        """发布错误回复；发布本身失败时只记录日志"""
        try:
            await self._tracker.post_comment(task_id, format_error(message))
        except TrackerError as e:
            log.error("engine_error_reply_failed", task_id=task_id, error=str(e))
        await self._notify(title, "error", message)

    async def _notify(self, title: str, status: str, message: str = "") -> None:
        if self._notifier is None:
            return
        await self._notifier.send(
            NotificationPayload(task_title=title, status=status, message=message)
        )

