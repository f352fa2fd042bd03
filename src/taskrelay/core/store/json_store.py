"""ConversationStore JSON 文档实现

全部会话保存在单个 JSON 文档中（task_id -> Conversation），整体读写。
整体读-改-写必须串行，否则不同 task_id 的并发 save 会互相覆盖；
这里所有写入都经过同一把 asyncio.Lock。
"""

import asyncio
import json
import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path

import structlog
from pydantic import ValidationError

from ..exceptions import StoreError
from ..models.conversation import Conversation
from .pruning import append_message

log = structlog.get_logger()


class JsonConversationStore:
    """ConversationStore 的单文档 JSON 实现"""

    append_message = staticmethod(append_message)

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._write_lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    async def load(self, task_id: str) -> Conversation:
        data = await self._load_all()
        conversation = data.get(task_id)
        return conversation if conversation is not None else Conversation()

    async def exists(self, task_id: str) -> bool:
        data = await self._load_all()
        return task_id in data

    async def list_conversations(self) -> dict[str, Conversation]:
        return await self._load_all()

    async def save(self, task_id: str, conversation: Conversation) -> None:
        """写入会话，自动更新 last_activity_at"""
        async with self._write_lock:
            data = await self._load_all()
            data[task_id] = conversation.model_copy(
                update={"last_activity_at": datetime.now(UTC)}
            )
            await self._write_all(data)

    async def cleanup(self, task_id: str) -> None:
        """删除会话，不存在时不报错"""
        async with self._write_lock:
            data = await self._load_all()
            if data.pop(task_id, None) is None:
                return
            await self._write_all(data)

    async def close(self) -> None:
        # 文件实现无常驻资源
        return None

    async def _load_all(self) -> dict[str, Conversation]:
        """读取整个文档；文件不存在视为空集合"""
        try:
            raw = await asyncio.to_thread(self._path.read_text, "utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise StoreError(f"无法读取会话文档: {e}", path=str(self._path)) from e

        if not raw.strip():
            return {}

        try:
            document = json.loads(raw)
            return {
                task_id: Conversation.model_validate(value)
                for task_id, value in document.items()
            }
        except (json.JSONDecodeError, AttributeError, ValidationError) as e:
            # 文档损坏时不能当作空集合，否则下一次 save 会抹掉全部会话
            raise StoreError(f"会话文档损坏: {e}", path=str(self._path)) from e

    async def _write_all(self, data: dict[str, Conversation]) -> None:
        """原子写入整个文档（临时文件 + rename）"""
        document = {
            task_id: conv.model_dump(mode="json", by_alias=True)
            for task_id, conv in data.items()
        }
        payload = json.dumps(document, ensure_ascii=False, indent=2)
        try:
            await asyncio.to_thread(self._replace_file, payload)
        except OSError as e:
            raise StoreError(f"无法写入会话文档: {e}", path=str(self._path)) from e
        log.debug("conversation_document_written", count=len(document))

    def _replace_file(self, payload: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.replace(tmp_path, self._path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise
