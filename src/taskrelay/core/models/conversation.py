"""Conversation Domain Model

按 task_id 存储的会话历史。第一条消息（anchor）由任务标题和描述合成，
裁剪时始终保留。
"""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

from .enums import MessageRole


def _now() -> datetime:
    return datetime.now(UTC)


class Message(BaseModel):
    """会话消息"""

    role: MessageRole = Field(description="消息角色")
    content: str = Field(description="消息文本")


class Conversation(BaseModel):
    """单个任务的会话

    持久化时使用 camelCase 字段名（createdAt / lastActivityAt），
    与既有 conversations.json 文档保持兼容。
    """

    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(default="", description="会话创建时的任务标题")
    messages: list[Message] = Field(default_factory=list, description="有序消息列表")
    created_at: datetime = Field(
        default_factory=_now,
        alias="createdAt",
        description="创建时间",
    )
    last_activity_at: datetime = Field(
        default_factory=_now,
        alias="lastActivityAt",
        description="最近一次写入时间",
    )

    @property
    def is_empty(self) -> bool:
        """空会话：仅标记为已见，尚未写入 anchor"""
        return not self.messages

    def history(self) -> list[dict[str, str]]:
        """转换为 messages 格式，供助手调用"""
        return [{"role": m.role.value, "content": m.content} for m in self.messages]


def build_anchor_text(title: str, description: str = "") -> str:
    """由任务标题和描述合成 anchor 消息文本"""
    return f"Task: {title}\n{description or ''}".strip()
