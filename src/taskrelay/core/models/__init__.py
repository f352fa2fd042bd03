"""TaskRelay Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .conversation import Conversation, Message, build_anchor_text
from .enums import (
    ConversationState,
    EventKind,
    EventSource,
    MessageRole,
    PushEventName,
)
from .event import (
    CommentPostedEvent,
    NormalizedEvent,
    TaskCompletedEvent,
    TaskCreatedEvent,
    TaskRelabeledEvent,
)
from .task import TrackerComment, TrackerTask

__all__ = [
    # 枚举
    "EventKind",
    "EventSource",
    "PushEventName",
    "MessageRole",
    "ConversationState",
    # Tracker 快照
    "TrackerTask",
    "TrackerComment",
    # 会话
    "Conversation",
    "Message",
    "build_anchor_text",
    # 事件
    "NormalizedEvent",
    "TaskCreatedEvent",
    "TaskRelabeledEvent",
    "CommentPostedEvent",
    "TaskCompletedEvent",
]
