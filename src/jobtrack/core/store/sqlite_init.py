"""SQLite 数据库初始化

PRAGMA 配置 + 三张表 DDL + 索引创建。
使用 aiosqlite 异步操作。嵌套结构（快照、子任务、依赖、附件）以 JSON 列存储，
按用户查询通过 json_each 展开 assigned_users。
"""

import aiosqlite

# tasks 表 DDL
_TASKS_DDL = """
CREATE TABLE IF NOT EXISTS tasks (
    task_id         TEXT PRIMARY KEY,
    title           TEXT NOT NULL,
    description     TEXT NOT NULL DEFAULT '',
    status          TEXT NOT NULL DEFAULT 'todo',
    priority        TEXT NOT NULL DEFAULT 'medium',
    category        TEXT NOT NULL DEFAULT 'Personal',
    due_date        TEXT NOT NULL,
    team_id         TEXT,
    created_by_id   TEXT NOT NULL,
    created_by      TEXT NOT NULL DEFAULT '{}',
    assigned_users  TEXT NOT NULL DEFAULT '[]',
    sub_tasks       TEXT NOT NULL DEFAULT '[]',
    dependencies    TEXT NOT NULL DEFAULT '[]',
    attachments     TEXT NOT NULL DEFAULT '[]',
    is_locked       INTEGER NOT NULL DEFAULT 0,
    completed_date  TEXT,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL,
    version         INTEGER NOT NULL DEFAULT 1
);
"""

_TASKS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_created_by ON tasks(created_by_id);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_team_id ON tasks(team_id);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_created_at ON tasks(created_at DESC);",
]

# users 表 DDL（外部用户服务的本地镜像）
_USERS_DDL = """
CREATE TABLE IF NOT EXISTS users (
    user_id        TEXT PRIMARY KEY,
    username       TEXT NOT NULL,
    email          TEXT NOT NULL DEFAULT '',
    full_name      TEXT NOT NULL DEFAULT '',
    department     TEXT NOT NULL DEFAULT '',
    title          TEXT NOT NULL DEFAULT '',
    position       TEXT NOT NULL DEFAULT '',
    profile_image  TEXT
);
"""

# performance_scores 表 DDL
_PERFORMANCE_DDL = """
CREATE TABLE IF NOT EXISTS performance_scores (
    user_id                TEXT PRIMARY KEY,
    score                  REAL NOT NULL DEFAULT 100,
    completed_tasks_count  INTEGER NOT NULL DEFAULT 0,
    overdue_tasks_count    INTEGER NOT NULL DEFAULT 0,
    last_updated           TEXT NOT NULL
);
"""


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    # 设置 PRAGMA
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    # 创建表
    await conn.execute(_TASKS_DDL)
    await conn.execute(_USERS_DDL)
    await conn.execute(_PERFORMANCE_DDL)

    # 创建索引
    for idx_sql in _TASKS_INDEXES:
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效

    Returns:
        True 如果 WAL 模式已启用
    """
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"
