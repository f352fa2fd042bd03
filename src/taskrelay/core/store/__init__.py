"""TaskRelay Core Store -- 会话持久化实现

提供工厂函数按配置创建 ConversationStore。
"""

from pathlib import Path

import aiosqlite

from .json_store import JsonConversationStore
from .protocols import ConversationStore
from .pruning import append_message
from .sqlite_init import init_db
from .sqlite_store import SqliteConversationStore


async def create_conversation_store(
    backend: str,
    path: str | Path,
) -> ConversationStore:
    """创建 ConversationStore

    Args:
        backend: "json"（单文档，默认）或 "sqlite"
        path: JSON 文档路径或 SQLite 数据库路径

    Returns:
        ConversationStore 实例

    Raises:
        ValueError: 未知的存储后端
    """
    store_path = Path(path)
    store_path.parent.mkdir(parents=True, exist_ok=True)

    if backend == "json":
        return JsonConversationStore(store_path)

    if backend == "sqlite":
        conn = await aiosqlite.connect(str(store_path))
        conn.row_factory = aiosqlite.Row
        await init_db(conn)
        return SqliteConversationStore(conn)

    raise ValueError(f"Unknown store backend: {backend}")


__all__ = [
    "ConversationStore",
    "JsonConversationStore",
    "SqliteConversationStore",
    "append_message",
    "create_conversation_store",
    "init_db",
]
