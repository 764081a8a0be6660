"""JobTrack Core Store -- SQLite 持久化实现

提供工厂函数创建共享数据库连接的 Store 实例组。
"""

from pathlib import Path

import aiosqlite

from .attachment_storage import LocalAttachmentStorage
from .performance_store import SqlitePerformanceStore
from .sqlite_init import init_db, verify_wal_mode
from .task_store import SqliteTaskStore
from .user_store import SqliteUserStore


class StoreGroup:
    """Store 实例组 -- 共享同一个数据库连接"""

    def __init__(
        self,
        conn: aiosqlite.Connection,
        attachments_dir: Path,
    ) -> None:
        self.conn = conn
        self.attachments_dir = attachments_dir
        self.task_store = SqliteTaskStore(conn)
        self.user_store = SqliteUserStore(conn)
        self.performance_store = SqlitePerformanceStore(conn)
        self.attachment_storage = LocalAttachmentStorage(attachments_dir)


async def create_store_group(
    db_path: str,
    attachments_dir: str | Path,
) -> StoreGroup:
    """创建 Store 实例组

    Args:
        db_path: SQLite 数据库文件路径
        attachments_dir: 附件文件存储目录

    Returns:
        StoreGroup 实例
    """
    attachments_path = Path(attachments_dir)
    attachments_path.mkdir(parents=True, exist_ok=True)

    # 确保数据库目录存在
    db_dir = Path(db_path).parent
    db_dir.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(db_path)
    conn.row_factory = aiosqlite.Row
    await init_db(conn)

    return StoreGroup(conn=conn, attachments_dir=attachments_path)


__all__ = [
    "StoreGroup",
    "create_store_group",
    "SqliteTaskStore",
    "SqliteUserStore",
    "SqlitePerformanceStore",
    "LocalAttachmentStorage",
    "init_db",
    "verify_wal_mode",
]
