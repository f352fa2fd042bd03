"""SQLite 数据库初始化

PRAGMA 配置 + conversations 表 DDL + 索引创建。
使用 aiosqlite 异步操作。
"""

import aiosqlite

# conversations 表 DDL（messages 以 JSON 数组保存，保持与 JSON 文档一致的结构）
_CONVERSATIONS_DDL = """
CREATE TABLE IF NOT EXISTS conversations (
    task_id           TEXT PRIMARY KEY,
    title             TEXT NOT NULL DEFAULT '',
    messages          TEXT NOT NULL DEFAULT '[]',
    created_at        TEXT NOT NULL,
    last_activity_at  TEXT NOT NULL
);
"""

_CONVERSATIONS_INDEXES = [
    (
        "CREATE INDEX IF NOT EXISTS idx_conversations_last_activity "
        "ON conversations(last_activity_at DESC);"
    ),
]


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    await conn.execute(_CONVERSATIONS_DDL)

    for idx_sql in _CONVERSATIONS_INDEXES:
        await conn.execute(idx_sql)

    await conn.commit()
