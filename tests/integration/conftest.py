"""集成测试配置 -- 组装完整 app 并启动 worker（轮询器由测试手动 tick）"""

from collections.abc import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from taskrelay.core.config import RelayConfig


@pytest_asyncio.fixture
async def relay_app(monkeypatch, json_store, fake_tracker, fake_assistant):
    monkeypatch.setenv("LOGFIRE_SEND_TO_LOGFIRE", "false")

    from taskrelay.gateway.main import create_app, shutdown_services, wire_services

    config = RelayConfig(
        tracker_api_token="tok-test",
        webhook_secret="whsec-test",
        poll_backfill=False,
    )
    application = create_app()
    wire_services(application, config, json_store, fake_tracker, fake_assistant)
    application.state.scheduler.start()
    yield application
    await shutdown_services(application, drain_timeout=2)


@pytest_asyncio.fixture
async def relay_client(relay_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=relay_app),
        base_url="http://test",
    ) as ac:
        yield ac
