"""全局 pytest 配置 -- 会话存储 fixture + Todoist / 助手替身"""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from pathlib import Path

import aiosqlite
import pytest
import pytest_asyncio
from taskrelay.core.models import TrackerComment, TrackerTask
from taskrelay.core.store import JsonConversationStore, SqliteConversationStore
from taskrelay.tracker import TaskNotFoundError, TrackerError


class FakeTracker:
    """内存版 TrackerClient"""

    def __init__(self) -> None:
        self.tasks: dict[str, TrackerTask] = {}
        self.comments: dict[str, list[TrackerComment]] = {}
        self.posted: list[tuple[str, str]] = []
        self.fail_get_task = False
        self.fail_list_tasks = False
        self.fail_comments = False
        self.fail_post = False

    def add_task(self, task: TrackerTask) -> TrackerTask:
        self.tasks[task.id] = task
        return task

    def add_comment(self, comment: TrackerComment) -> TrackerComment:
        self.comments.setdefault(comment.task_id, []).append(comment)
        return comment

    def posted_to(self, task_id: str) -> list[str]:
        return [text for tid, text in self.posted if tid == task_id]

    async def get_task(self, task_id: str) -> TrackerTask:
        if self.fail_get_task:
            raise TrackerError("connection reset")
        if task_id not in self.tasks:
            raise TaskNotFoundError(task_id)
        return self.tasks[task_id]

    async def list_tasks(self) -> list[TrackerTask]:
        if self.fail_list_tasks:
            raise TrackerError("service unavailable", status_code=503)
        return list(self.tasks.values())

    async def get_comments(self, task_id: str) -> list[TrackerComment]:
        if self.fail_comments:
            raise TrackerError("service unavailable", status_code=503)
        return list(self.comments.get(task_id, []))

    async def post_comment(self, task_id: str, content: str) -> None:
        if self.fail_post:
            raise TrackerError("forbidden", status_code=403)
        self.posted.append((task_id, content))

    async def has_label(self, task_id: str, label: str) -> bool:
        task = self.tasks.get(task_id)
        return task is not None and task.has_label(label)

    async def close(self) -> None:
        return None


class FakeAssistant:
    """记录调用参数的 AssistantService 替身"""

    def __init__(self, reply: str = "Here is my answer") -> None:
        self.reply = reply
        self.error: Exception | None = None
        self.calls: list[tuple[str, list[dict[str, str]]]] = []

    async def invoke(self, system_context: str, history: list[dict[str, str]]) -> str:
        self.calls.append((system_context, [dict(m) for m in history]))
        if self.error is not None:
            raise self.error
        return self.reply

    async def health_check(self) -> bool:
        return True


@pytest.fixture
def make_task():
    """TrackerTask 工厂，默认带 AI 标签"""

    def _make(
        task_id: str = "task-1",
        content: str = "Research flights",
        description: str = "",
        labels: list[str] | None = None,
        added_at: datetime | None = None,
        **kwargs,
    ) -> TrackerTask:
        return TrackerTask(
            id=task_id,
            content=content,
            description=description,
            labels=["AI"] if labels is None else labels,
            added_at=added_at or datetime.now(UTC),
            **kwargs,
        )

    return _make


@pytest.fixture
def make_comment():
    """TrackerComment 工厂"""

    def _make(
        comment_id: str,
        task_id: str = "task-1",
        content: str = "follow-up question",
        posted_at: datetime | None = None,
    ) -> TrackerComment:
        return TrackerComment(
            id=comment_id,
            task_id=task_id,
            content=content,
            posted_at=posted_at or datetime.now(UTC),
            posted_uid="user-1",
        )

    return _make


@pytest.fixture
def fake_tracker() -> FakeTracker:
    return FakeTracker()


@pytest.fixture
def fake_assistant() -> FakeAssistant:
    return FakeAssistant()


@pytest.fixture
def json_store(tmp_path: Path) -> JsonConversationStore:
    """临时目录下的 JSON 会话存储"""
    return JsonConversationStore(tmp_path / "conversations.json")


@pytest_asyncio.fixture
async def sqlite_store(tmp_path: Path) -> AsyncGenerator[SqliteConversationStore, None]:
    """已初始化的临时 SQLite 会话存储"""
    from taskrelay.core.store.sqlite_init import init_db

    conn = await aiosqlite.connect(str(tmp_path / "taskrelay.db"))
    await init_db(conn)
    store = SqliteConversationStore(conn)
    yield store
    await store.close()
