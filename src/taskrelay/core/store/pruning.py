"""会话裁剪 -- append_message 纯函数

追加消息后若超过 max_messages，保留第 0 条（anchor）+ 最近 max_messages - 1 条。
"""

from ..models.conversation import Conversation, Message
from ..models.enums import MessageRole


def append_message(
    conversation: Conversation,
    role: MessageRole | str,
    content: str,
    max_messages: int = 20,
) -> Conversation:
    """追加一条消息并按上限裁剪，返回新的 Conversation（不修改入参）

    Args:
        conversation: 原会话
        role: 消息角色
        content: 消息文本
        max_messages: 消息数上限，至少为 1

    Returns:
        新 Conversation 实例

    Raises:
        ValueError: max_messages < 1
    """
    if max_messages < 1:
        raise ValueError(f"max_messages must be at least 1, got {max_messages}")

    messages = [*conversation.messages, Message(role=MessageRole(role), content=content)]

    if len(messages) > max_messages:
        # anchor + 最近 (max_messages - 1) 条；max_messages == 1 时只剩 anchor
        tail = messages[-(max_messages - 1):] if max_messages > 1 else []
        messages = [messages[0], *tail]

    return conversation.model_copy(update={"messages": messages})
