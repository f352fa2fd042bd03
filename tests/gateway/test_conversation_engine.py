"""TaskConversationEngine 测试 -- 状态迁移、失败回复、完成清理"""

import json

import httpx
from taskrelay.core.config import (
    AI_INDICATOR,
    COMPLETION_NOTICE,
    ERROR_PREFIX,
    RETRY_HINT,
)
from taskrelay.core.models import (
    CommentPostedEvent,
    Conversation,
    EventSource,
    MessageRole,
    TaskCompletedEvent,
    TaskCreatedEvent,
    TaskRelabeledEvent,
    TrackerTask,
)
from taskrelay.core.store import append_message
from taskrelay.gateway.services.conversation_engine import (
    TaskConversationEngine,
    format_error,
    format_reply,
)
from taskrelay.gateway.services.notification_service import NotificationService
from taskrelay.provider import AssistantTimeoutError


def _comment_event(text: str, comment_id: str = "c1", task_id: str = "task-1"):
    return CommentPostedEvent(
        source=EventSource.PUSH,
        task_id=task_id,
        comment_id=comment_id,
        text=text,
    )


async def _seed_conversation(store, task_id: str = "task-1") -> Conversation:
    conv = Conversation(title="Research flights")
    conv = append_message(conv, MessageRole.USER, "Task: Research flights")
    conv = append_message(conv, MessageRole.ASSISTANT, "Where to?")
    await store.save(task_id, conv)
    return conv


class TestFormatting:
    def test_reply_prefix(self):
        assert format_reply("hi") == f"{AI_INDICATOR}\n\nhi"

    def test_error_reply(self):
        text = format_error("assistant timed out after 120s")
        assert text.startswith(ERROR_PREFIX)
        assert text.endswith(RETRY_HINT)


class TestStartConversation:
    async def test_task_created_writes_anchor_and_reply(
        self, engine, json_store, fake_tracker, fake_assistant, make_task
    ):
        task = make_task(description="Budget 500 EUR")
        await engine.handle(TaskCreatedEvent(source=EventSource.PUSH, task=task))

        conv = await json_store.load("task-1")
        assert conv.title == "Research flights"
        assert [m.role for m in conv.messages] == [MessageRole.USER, MessageRole.ASSISTANT]
        assert conv.messages[0].content == "Task: Research flights\nBudget 500 EUR"
        assert conv.messages[1].content == "Here is my answer"

        system_context, history = fake_assistant.calls[0]
        assert 'Current task: "Research flights"' in system_context
        assert history == [{"role": "user", "content": "Task: Research flights\nBudget 500 EUR"}]
        assert fake_tracker.posted_to("task-1") == [format_reply("Here is my answer")]

    async def test_relabeled_behaves_like_created(
        self, engine, json_store, fake_tracker, make_task
    ):
        await engine.handle(TaskRelabeledEvent(source=EventSource.POLL, task=make_task()))
        conv = await json_store.load("task-1")
        assert len(conv.messages) == 2
        assert len(fake_tracker.posted) == 1


class TestContinueConversation:
    async def test_comment_appends_and_replies(
        self, engine, json_store, fake_tracker, fake_assistant, make_task
    ):
        fake_tracker.add_task(make_task())
        await _seed_conversation(json_store)

        await engine.handle(_comment_event("Lisbon in May"))

        conv = await json_store.load("task-1")
        assert [m.content for m in conv.messages] == [
            "Task: Research flights",
            "Where to?",
            "Lisbon in May",
            "Here is my answer",
        ]
        _, history = fake_assistant.calls[0]
        assert history[-1] == {"role": "user", "content": "Lisbon in May"}
        assert len(history) == 3

    async def test_empty_conversation_gets_anchor(
        self, engine, json_store, fake_tracker, make_task
    ):
        fake_tracker.add_task(make_task(content="Old task"))
        await json_store.save("task-1", Conversation(title="Old task"))

        await engine.handle(_comment_event("please help now"))

        conv = await json_store.load("task-1")
        assert [m.content for m in conv.messages] == [
            "Task: Old task",
            "please help now",
            "Here is my answer",
        ]

    async def test_history_is_pruned_with_anchor_kept(
        self, json_store, fake_tracker, fake_assistant, make_task
    ):
        engine = TaskConversationEngine(json_store, fake_tracker, fake_assistant, max_messages=4)
        fake_tracker.add_task(make_task())
        await _seed_conversation(json_store)

        for i in range(3):
            await engine.handle(_comment_event(f"question {i}", comment_id=f"c{i}"))

        conv = await json_store.load("task-1")
        assert len(conv.messages) == 4
        assert conv.messages[0].content == "Task: Research flights"
        assert conv.messages[-2].content == "question 2"

    async def test_task_fetch_failure_posts_error(
        self, engine, json_store, fake_tracker, fake_assistant
    ):
        before = await _seed_conversation(json_store)
        fake_tracker.fail_get_task = True

        await engine.handle(_comment_event("hello"))

        assert fake_assistant.calls == []
        posted = fake_tracker.posted_to("task-1")
        assert len(posted) == 1
        assert posted[0].startswith(ERROR_PREFIX)
        assert (await json_store.load("task-1")).messages == before.messages

    async def test_malformed_task_payload_posts_error(
        self, engine, json_store, fake_tracker, fake_assistant, monkeypatch
    ):
        before = await _seed_conversation(json_store)

        async def get_task(task_id):
            return TrackerTask.model_validate({"id": task_id})

        monkeypatch.setattr(fake_tracker, "get_task", get_task)

        await engine.handle(_comment_event("hello"))

        assert fake_assistant.calls == []
        posted = fake_tracker.posted_to("task-1")
        assert len(posted) == 1
        assert posted[0].startswith(ERROR_PREFIX)
        assert (await json_store.load("task-1")).messages == before.messages


class TestAssistantFailure:
    async def test_user_message_kept_and_error_posted(
        self, engine, json_store, fake_tracker, fake_assistant, make_task
    ):
        fake_tracker.add_task(make_task())
        await _seed_conversation(json_store)
        fake_assistant.error = AssistantTimeoutError(120)

        await engine.handle(_comment_event("still there?"))

        conv = await json_store.load("task-1")
        assert conv.messages[-1].role == MessageRole.USER
        assert conv.messages[-1].content == "still there?"
        assert len(conv.messages) == 3

        posted = fake_tracker.posted_to("task-1")
        assert posted == [format_error("assistant timed out after 120s")]
        assert not posted[0].startswith(AI_INDICATOR)

    async def test_unexpected_error_does_not_propagate(
        self, engine, json_store, fake_tracker, fake_assistant, make_task
    ):
        fake_assistant.error = RuntimeError("segfault")
        await engine.handle(TaskCreatedEvent(source=EventSource.PUSH, task=make_task()))

        conv = await json_store.load("task-1")
        assert len(conv.messages) == 1
        assert "segfault" in fake_tracker.posted_to("task-1")[0]

    async def test_reply_post_failure_keeps_history(
        self, engine, json_store, fake_tracker, make_task
    ):
        fake_tracker.fail_post = True
        await engine.handle(TaskCreatedEvent(source=EventSource.PUSH, task=make_task()))

        conv = await json_store.load("task-1")
        assert conv.messages[-1].role == MessageRole.ASSISTANT
        assert fake_tracker.posted == []


class TestComplete:
    async def test_completion_notice_and_cleanup(self, engine, json_store, fake_tracker):
        await _seed_conversation(json_store)

        await engine.handle(TaskCompletedEvent(source=EventSource.PUSH, task_id="task-1"))

        assert not await json_store.exists("task-1")
        assert fake_tracker.posted_to("task-1") == [format_reply(COMPLETION_NOTICE)]

    async def test_completion_without_history_is_silent(self, engine, json_store, fake_tracker):
        await json_store.save("task-1", Conversation(title="seen only"))

        await engine.handle(TaskCompletedEvent(source=EventSource.POLL, task_id="task-1"))

        assert not await json_store.exists("task-1")
        assert fake_tracker.posted == []

    async def test_completion_of_unknown_task(self, engine, json_store, fake_tracker):
        await engine.handle(TaskCompletedEvent(source=EventSource.PUSH, task_id="nope"))
        assert not await json_store.exists("nope")
        assert fake_tracker.posted == []

    async def test_notice_failure_still_cleans_up(self, engine, json_store, fake_tracker):
        await _seed_conversation(json_store)
        fake_tracker.fail_post = True

        await engine.handle(TaskCompletedEvent(source=EventSource.PUSH, task_id="task-1"))
        assert not await json_store.exists("task-1")


class TestNotifications:
    async def test_success_and_error_notifications(
        self, json_store, fake_tracker, fake_assistant, make_task
    ):
        sent: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            sent.append(json.loads(request.content))
            return httpx.Response(200)

        notifier = NotificationService(
            "https://ntfy.test/relay", transport=httpx.MockTransport(handler)
        )
        engine = TaskConversationEngine(
            json_store, fake_tracker, fake_assistant, notifier=notifier
        )

        await engine.handle(TaskCreatedEvent(source=EventSource.PUSH, task=make_task()))
        fake_assistant.error = RuntimeError("quota exceeded")
        fake_tracker.add_task(make_task())
        await engine.handle(_comment_event("again"))

        assert [(n["taskTitle"], n["status"]) for n in sent] == [
            ("Research flights", "success"),
            ("Research flights", "error"),
        ]
        assert sent[1]["message"] == "quota exceeded"
