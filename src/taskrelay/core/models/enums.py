"""枚举定义

包含 EventKind、EventSource、PushEventName、MessageRole、ConversationState 枚举。
"""

from enum import StrEnum


class EventKind(StrEnum):
    """标准化事件类型（两个入口产出同一组类型）"""

    TASK_CREATED = "task_created"
    TASK_RELABELED = "task_relabeled"
    COMMENT_POSTED = "comment_posted"
    TASK_COMPLETED = "task_completed"


class EventSource(StrEnum):
    """事件来源渠道"""

    PUSH = "push"
    POLL = "poll"


class PushEventName(StrEnum):
    """Todoist webhook event_name"""

    ITEM_ADDED = "item:added"
    ITEM_UPDATED = "item:updated"
    ITEM_COMPLETED = "item:completed"
    NOTE_ADDED = "note:added"


class MessageRole(StrEnum):
    """会话消息角色"""

    USER = "user"
    ASSISTANT = "assistant"


class ConversationState(StrEnum):
    """单个任务的会话状态

    不单独存储，由存储层查询推导：
    - UNSEEN: 无会话记录
    - ACTIVE: 会话记录存在（可能为空）
    - COMPLETED: 任务完成后会话已删除
    """

    UNSEEN = "UNSEEN"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"

