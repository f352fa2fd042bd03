"""Store Protocol 接口定义

定义 ConversationStore 的抽象接口，
使用 Python Protocol 实现结构化子类型（duck typing）。
"""

from typing import Protocol

from ..models.conversation import Conversation
from ..models.enums import MessageRole


class ConversationStore(Protocol):
    """会话存储接口

    所有集合级写入（save / cleanup）必须经由同一条串行写入路径，
    即使调用方已经按 task_id 串行化。
    """

    async def load(self, task_id: str) -> Conversation:
        """读取会话；不存在时返回新的空会话（不落盘）"""
        ...

    async def save(self, task_id: str, conversation: Conversation) -> None:
        """写入会话，last_activity_at 盖为当前时间，覆盖旧值"""
        ...

    async def exists(self, task_id: str) -> bool:
        """会话是否存在"""
        ...

    async def cleanup(self, task_id: str) -> None:
        """删除会话；不存在时为 no-op"""
        ...

    async def list_conversations(self) -> dict[str, Conversation]:
        """读取全部会话"""
        ...

    async def close(self) -> None:
        """释放底层资源"""
        ...

    def append_message(
        self,
        conversation: Conversation,
        role: MessageRole | str,
        content: str,
        max_messages: int = 20,
    ) -> Conversation:
        """追加消息并裁剪（纯函数）"""
        ...
