"""集成测试共享 fixture"""

import os
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jobtrack.core.cache import CacheLayer
from jobtrack.core.notifications import NotificationDispatcher
from jobtrack.core.performance import PerformanceRecalculator
from jobtrack.core.store import create_store_group
from jobtrack.gateway.services.side_effects import SideEffectRunner
from jobtrack.notify import LoggingNotificationSender


@pytest_asyncio.fixture
async def integration_app(tmp_path: Path, clock, make_user):
    """集成测试用 FastAPI app（可推进时钟 + 日志通知传输）"""
    os.environ["JOBTRACK_DB_PATH"] = str(tmp_path / "test.db")
    os.environ["JOBTRACK_ATTACHMENTS_DIR"] = str(tmp_path / "uploads")
    os.environ["LOGFIRE_SEND_TO_LOGFIRE"] = "false"

    from jobtrack.gateway.main import create_app

    app = create_app()

    store_group = await create_store_group(
        str(tmp_path / "test.db"),
        str(tmp_path / "uploads"),
    )
    sender = LoggingNotificationSender()
    app.state.store_group = store_group
    app.state.cache = CacheLayer()
    app.state.notification_sender = sender
    app.state.dispatcher = NotificationDispatcher(sender, concurrency=2)
    app.state.recalculator = PerformanceRecalculator(
        store_group.task_store, store_group.performance_store, clock=clock, concurrency=2
    )
    app.state.side_effects = SideEffectRunner()
    app.state.clock = clock

    # A 创建任务，B / C 被分配
    for user_id in ("u-alice", "u-bob", "u-carol"):
        await store_group.user_store.upsert_user(make_user(user_id))

    yield app

    await app.state.side_effects.shutdown(1.0)
    await store_group.conn.close()
    os.environ.pop("JOBTRACK_DB_PATH", None)
    os.environ.pop("JOBTRACK_ATTACHMENTS_DIR", None)
    os.environ.pop("LOGFIRE_SEND_TO_LOGFIRE", None)


@pytest_asyncio.fixture
async def client(integration_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=integration_app),
        base_url="http://test",
    ) as ac:
        yield ac
