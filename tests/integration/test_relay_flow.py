"""端到端测试 -- webhook 与轮询两个入口汇入同一条处理路径"""

import json
from datetime import UTC, datetime, timedelta

from httpx import AsyncClient
from taskrelay.core.config import AI_INDICATOR, COMPLETION_NOTICE
from taskrelay.gateway.routes.webhook import SIGNATURE_HEADER, compute_signature
from taskrelay.gateway.services.conversation_engine import format_reply


async def _post_event(client: AsyncClient, event_name: str, event_data: dict):
    body = json.dumps({"event_name": event_name, "event_data": event_data}).encode()
    return await client.post(
        "/webhook",
        content=body,
        headers={SIGNATURE_HEADER: compute_signature(body, "whsec-test")},
    )


def _task_payload(task) -> dict:
    return task.model_dump(mode="json")


class TestWebhookFlow:
    async def test_task_comment_complete(
        self, relay_app, relay_client, json_store, fake_tracker, fake_assistant, make_task
    ):
        task = fake_tracker.add_task(make_task(added_at=datetime.now(UTC) + timedelta(seconds=5)))
        scheduler = relay_app.state.scheduler

        resp = await _post_event(relay_client, "item:added", _task_payload(task))
        assert resp.status_code == 200
        await scheduler.join()
        assert fake_tracker.posted_to(task.id) == [format_reply("Here is my answer")]

        # 服务自己的回复经 webhook 回流时被丢弃
        await _post_event(
            relay_client,
            "note:added",
            {
                "id": "n-own",
                "item_id": task.id,
                "content": format_reply("Here is my answer"),
                "posted_at": datetime.now(UTC).isoformat(),
            },
        )
        await _post_event(
            relay_client,
            "note:added",
            {
                "id": "n-1",
                "item_id": task.id,
                "content": "Cheaper options?",
                "posted_at": datetime.now(UTC).isoformat(),
            },
        )
        await scheduler.join()
        assert len(fake_assistant.calls) == 2
        assert fake_assistant.calls[1][1][-1] == {"role": "user", "content": "Cheaper options?"}

        detail = (await relay_client.get(f"/api/conversations/{task.id}")).json()
        assert len(detail["messages"]) == 4

        await _post_event(
            relay_client, "item:completed", {"id": task.id, "labels": ["AI"]}
        )
        await scheduler.join()
        assert fake_tracker.posted_to(task.id)[-1] == format_reply(COMPLETION_NOTICE)
        assert not await json_store.exists(task.id)
        resp = await relay_client.get(f"/api/conversations/{task.id}")
        assert resp.status_code == 404


class TestPushPollConvergence:
    async def test_task_seen_by_both_channels_once(
        self, relay_app, relay_client, json_store, fake_tracker, fake_assistant, make_task
    ):
        task = fake_tracker.add_task(make_task(added_at=datetime.now(UTC) + timedelta(seconds=5)))
        poller = relay_app.state.poller

        await _post_event(relay_client, "item:added", _task_payload(task))
        await poller.tick()
        await relay_app.state.scheduler.join()

        assert len(fake_assistant.calls) == 1
        assert len(fake_tracker.posted_to(task.id)) == 1
        assert len((await json_store.list_conversations())) == 1

    async def test_comment_seen_by_both_channels_once(
        self,
        relay_app,
        relay_client,
        json_store,
        fake_tracker,
        fake_assistant,
        make_task,
        make_comment,
    ):
        task = fake_tracker.add_task(make_task(added_at=datetime.now(UTC) + timedelta(seconds=5)))
        scheduler = relay_app.state.scheduler
        await _post_event(relay_client, "item:added", _task_payload(task))
        await scheduler.join()

        comment = fake_tracker.add_comment(make_comment("c-42", task_id=task.id, content="hi"))
        await _post_event(relay_client, "note:added", comment.model_dump(mode="json"))
        await scheduler.join()
        assert await relay_app.state.poller.tick() == 0
        await scheduler.join()

        assert len(fake_assistant.calls) == 2
        user_turns = [
            m.content for m in (await json_store.load(task.id)).messages if m.role == "user"
        ]
        assert user_turns.count("hi") == 1

    async def test_poll_recovers_missed_comment(
        self, relay_app, json_store, fake_tracker, fake_assistant, make_task, make_comment
    ):
        task = fake_tracker.add_task(make_task(added_at=datetime.now(UTC) + timedelta(seconds=5)))
        poller = relay_app.state.poller
        scheduler = relay_app.state.scheduler

        assert await poller.tick() == 1
        await scheduler.join()

        # webhook 丢失的评论与服务自己的回复
        fake_tracker.add_comment(make_comment("c-1", task_id=task.id, content="follow up"))
        fake_tracker.add_comment(
            make_comment("c-2", task_id=task.id, content=f"{AI_INDICATOR}\n\nold reply")
        )
        assert await poller.tick() == 1
        await scheduler.join()

        assert len(fake_assistant.calls) == 2
        assert fake_assistant.calls[1][1][-1]["content"] == "follow up"
