"""UserStore SQLite 实现 -- 外部用户服务的本地镜像"""

from collections.abc import Iterable

import aiosqlite

from ..exceptions import PersistenceError
from ..models.user import User

_USER_COLUMNS = "user_id, username, email, full_name, department, title, position, profile_image"


class SqliteUserStore:
    """UserStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def upsert_user(self, user: User) -> None:
        """插入或覆盖用户资料"""
        try:
            await self._conn.execute(
                f"""
                INSERT INTO users ({_USER_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    username = excluded.username,
                    email = excluded.email,
                    full_name = excluded.full_name,
                    department = excluded.department,
                    title = excluded.title,
                    position = excluded.position,
                    profile_image = excluded.profile_image
                """,
                (
                    user.user_id,
                    user.username,
                    user.email,
                    user.full_name,
                    user.department,
                    user.title,
                    user.position,
                    user.profile_image,
                ),
            )
            await self._conn.commit()
        except aiosqlite.Error as e:
            await self._conn.rollback()
            raise PersistenceError(f"Failed to save user {user.user_id}: {e}") from e

    async def get_user(self, user_id: str) -> User | None:
        users = await self.get_users([user_id])
        return users[0] if users else None

    async def get_users(self, user_ids: Iterable[str]) -> list[User]:
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            return []
        placeholders = ", ".join("?" for _ in ids)
        try:
            cursor = await self._conn.execute(
                f"SELECT {_USER_COLUMNS} FROM users WHERE user_id IN ({placeholders})",
                tuple(ids),
            )
            rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise PersistenceError(f"Failed to query users: {e}") from e
        return [self._row_to_user(row) for row in rows]

    async def list_user_ids(self) -> list[str]:
        try:
            cursor = await self._conn.execute("SELECT user_id FROM users ORDER BY user_id")
            rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise PersistenceError(f"Failed to list users: {e}") from e
        return [row[0] for row in rows]

    @staticmethod
    def _row_to_user(row: aiosqlite.Row) -> User:
        return User(
            user_id=row[0],
            username=row[1],
            email=row[2],
            full_name=row[3],
            department=row[4],
            title=row[5],
            position=row[6],
            profile_image=row[7],
        )
