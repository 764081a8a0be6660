"""全局 pytest 配置 -- 临时 SQLite 数据库 + 领域对象构造 fixture"""

from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path

import aiosqlite
import pytest
import pytest_asyncio
from jobtrack.core.models import CreatorInfo, Task, User
from jobtrack.core.store import StoreGroup, create_store_group
from ulid import ULID

FIXED_NOW = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


class FakeClock:
    """可手动推进的时钟"""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    """固定起点的可推进时钟"""
    return FakeClock(FIXED_NOW)


@pytest_asyncio.fixture
async def tmp_db_path(tmp_path: Path) -> Path:
    """提供临时 SQLite 数据库路径"""
    return tmp_path / "test.db"


@pytest_asyncio.fixture
async def tmp_attachments_dir(tmp_path: Path) -> Path:
    """提供临时附件目录"""
    attachments_dir = tmp_path / "uploads"
    attachments_dir.mkdir(parents=True, exist_ok=True)
    return attachments_dir


@pytest_asyncio.fixture
async def db_conn(tmp_db_path: Path) -> AsyncGenerator[aiosqlite.Connection, None]:
    """提供已初始化的临时 SQLite 数据库连接"""
    from jobtrack.core.store.sqlite_init import init_db

    conn = await aiosqlite.connect(str(tmp_db_path))
    await init_db(conn)
    yield conn
    await conn.close()


@pytest_asyncio.fixture
async def store_group(
    tmp_db_path: Path, tmp_attachments_dir: Path
) -> AsyncGenerator[StoreGroup, None]:
    """提供共享连接的 Store 实例组"""
    group = await create_store_group(str(tmp_db_path), tmp_attachments_dir)
    yield group
    await group.conn.close()


@pytest.fixture
def make_user() -> Callable[..., User]:
    """构造 User：make_user("u-bob", department="QA")"""

    def _make(user_id: str, **overrides) -> User:
        name = user_id.removeprefix("u-")
        fields = {
            "user_id": user_id,
            "username": name,
            "email": f"{name}@example.com",
            "full_name": name.title(),
            "department": "Engineering",
            "title": "Engineer",
            "position": "Developer",
        }
        fields.update(overrides)
        return User(**fields)

    return _make


@pytest.fixture
def make_task(clock: FakeClock) -> Callable[..., Task]:
    """构造 Task：默认由 u-alice 创建、明天到期、无子任务"""

    def _make(**overrides) -> Task:
        fields = {
            "task_id": str(ULID()),
            "title": "Prepare quarterly report",
            "due_date": clock.now + timedelta(days=1),
            "created_by": CreatorInfo(user_id="u-alice", username="alice", full_name="Alice"),
            "created_at": clock.now,
            "updated_at": clock.now,
        }
        fields.update(overrides)
        return Task(**fields)

    return _make
