"""gateway 测试配置 -- 手动初始化 app.state（绕过 lifespan）+ httpx AsyncClient"""

import os
from collections.abc import AsyncGenerator, Callable
from datetime import timedelta
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jobtrack.core.cache import CacheLayer
from jobtrack.core.notifications import NotificationDispatcher
from jobtrack.core.performance import PerformanceRecalculator
from jobtrack.core.store import create_store_group
from jobtrack.gateway.services.side_effects import SideEffectRunner
from jobtrack.gateway.services.task_service import TaskService
from jobtrack.notify import LoggingNotificationSender

_ENV_KEYS = ["JOBTRACK_DB_PATH", "JOBTRACK_ATTACHMENTS_DIR", "LOGFIRE_SEND_TO_LOGFIRE"]


@pytest_asyncio.fixture
async def gateway_tmp_dir(tmp_path: Path) -> Path:
    """Gateway 临时数据目录"""
    (tmp_path / "sqlite").mkdir(parents=True, exist_ok=True)
    (tmp_path / "uploads").mkdir(parents=True, exist_ok=True)
    return tmp_path


@pytest_asyncio.fixture
async def app(gateway_tmp_dir: Path, clock, make_user):
    """测试用 FastAPI app：共享组件手动挂到 app.state，时钟可推进"""
    db_path = str(gateway_tmp_dir / "sqlite" / "test.db")
    uploads_dir = gateway_tmp_dir / "uploads"
    os.environ["JOBTRACK_DB_PATH"] = db_path
    os.environ["JOBTRACK_ATTACHMENTS_DIR"] = str(uploads_dir)
    os.environ["LOGFIRE_SEND_TO_LOGFIRE"] = "false"

    from jobtrack.gateway.main import create_app

    application = create_app()

    store_group = await create_store_group(db_path, uploads_dir)
    sender = LoggingNotificationSender()
    application.state.store_group = store_group
    application.state.cache = CacheLayer()
    application.state.notification_sender = sender
    application.state.dispatcher = NotificationDispatcher(sender)
    application.state.recalculator = PerformanceRecalculator(
        store_group.task_store, store_group.performance_store, clock=clock
    )
    application.state.side_effects = SideEffectRunner()
    application.state.clock = clock

    for user_id in ("u-alice", "u-bob", "u-carol"):
        await store_group.user_store.upsert_user(make_user(user_id))

    yield application

    await application.state.side_effects.shutdown(1.0)
    await store_group.conn.close()
    for key in _ENV_KEYS:
        os.environ.pop(key, None)


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """提供 httpx AsyncClient 用于测试"""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def service(app) -> TaskService:
    """与路由共享 app.state 组件的 TaskService"""
    state = app.state
    return TaskService(
        state.store_group,
        cache=state.cache,
        dispatcher=state.dispatcher,
        recalculator=state.recalculator,
        runner=state.side_effects,
        clock=state.clock,
    )


@pytest.fixture
def sent(app) -> list:
    """日志传输记录下来的通知"""
    return app.state.notification_sender.sent


@pytest.fixture
def task_payload(clock) -> Callable[..., dict]:
    """构造 camelCase 任务请求体：task_payload(title="X", subTasks=[...])"""

    def _make(**overrides) -> dict:
        payload = {
            "title": "Prepare quarterly report",
            "description": "Numbers for Q1",
            "priority": "high",
            "dueDate": (clock.now + timedelta(days=3)).isoformat(),
        }
        payload.update(overrides)
        return payload

    return _make
