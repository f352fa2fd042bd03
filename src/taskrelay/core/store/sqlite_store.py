"""ConversationStore SQLite 实现

每个 task_id 一行。所有写入仍经过同一把锁提交，
与 JSON 实现保持一致的串行写入语义。
"""

import asyncio
import json
from datetime import UTC, datetime

import aiosqlite

from ..exceptions import StoreError
from ..models.conversation import Conversation, Message
from .pruning import append_message


class SqliteConversationStore:
    """ConversationStore 的 SQLite 实现"""

    append_message = staticmethod(append_message)

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn
        self._write_lock = asyncio.Lock()

    @property
    def conn(self) -> aiosqlite.Connection:
        return self._conn

    async def load(self, task_id: str) -> Conversation:
        cursor = await self._conn.execute(
            "SELECT * FROM conversations WHERE task_id = ?",
            (task_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return Conversation()
        return self._row_to_conversation(row)

    async def exists(self, task_id: str) -> bool:
        cursor = await self._conn.execute(
            "SELECT 1 FROM conversations WHERE task_id = ? LIMIT 1",
            (task_id,),
        )
        return await cursor.fetchone() is not None

    async def list_conversations(self) -> dict[str, Conversation]:
        """按最近活动时间倒序读取全部会话"""
        cursor = await self._conn.execute(
            "SELECT * FROM conversations ORDER BY last_activity_at DESC"
        )
        rows = await cursor.fetchall()
        return {row[0]: self._row_to_conversation(row) for row in rows}

    async def save(self, task_id: str, conversation: Conversation) -> None:
        """写入会话（upsert），自动更新 last_activity_at"""
        now = datetime.now(UTC)
        messages = json.dumps(
            [m.model_dump(mode="json") for m in conversation.messages],
            ensure_ascii=False,
        )
        async with self._write_lock:
            try:
                await self._conn.execute(
                    """
                    INSERT INTO conversations (task_id, title, messages,
                                               created_at, last_activity_at)
                    VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT(task_id) DO UPDATE SET
                        title = excluded.title,
                        messages = excluded.messages,
                        created_at = excluded.created_at,
                        last_activity_at = excluded.last_activity_at
                    """,
                    (
                        task_id,
                        conversation.title,
                        messages,
                        conversation.created_at.isoformat(),
                        now.isoformat(),
                    ),
                )
                await self._conn.commit()
            except aiosqlite.Error as e:
                await self._conn.rollback()
                raise StoreError(f"会话写入失败: {e}") from e

    async def cleanup(self, task_id: str) -> None:
        """删除会话，不存在时不报错"""
        async with self._write_lock:
            try:
                await self._conn.execute(
                    "DELETE FROM conversations WHERE task_id = ?",
                    (task_id,),
                )
                await self._conn.commit()
            except aiosqlite.Error as e:
                await self._conn.rollback()
                raise StoreError(f"会话删除失败: {e}") from e

    async def close(self) -> None:
        await self._conn.close()

    @staticmethod
    def _row_to_conversation(row: aiosqlite.Row) -> Conversation:
        """将数据库行转换为 Conversation 模型"""
        messages_data = json.loads(row[2]) if row[2] else []
        return Conversation(
            title=row[1],
            messages=[Message(**m) for m in messages_data],
            created_at=datetime.fromisoformat(row[3]),
            last_activity_at=datetime.fromisoformat(row[4]),
        )
