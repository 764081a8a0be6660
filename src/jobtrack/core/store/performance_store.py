"""PerformanceStore SQLite 实现

每个用户一行，重算结果整体覆盖（last-writer-wins，重算本身幂等）。
"""

from datetime import datetime

import aiosqlite

from ..exceptions import PersistenceError
from ..models.performance import PerformanceScore


class SqlitePerformanceStore:
    """PerformanceStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def save_score(self, score: PerformanceScore) -> None:
        try:
            await self._conn.execute(
                """
                INSERT INTO performance_scores (user_id, score, completed_tasks_count,
                                                overdue_tasks_count, last_updated)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    score = excluded.score,
                    completed_tasks_count = excluded.completed_tasks_count,
                    overdue_tasks_count = excluded.overdue_tasks_count,
                    last_updated = excluded.last_updated
                """,
                (
                    score.user_id,
                    score.score,
                    score.completed_tasks_count,
                    score.overdue_tasks_count,
                    score.last_updated.isoformat(),
                ),
            )
            await self._conn.commit()
        except aiosqlite.Error as e:
            await self._conn.rollback()
            raise PersistenceError(
                f"Failed to save performance score for user {score.user_id}: {e}"
            ) from e

    async def get_score(self, user_id: str) -> PerformanceScore | None:
        try:
            cursor = await self._conn.execute(
                """
                SELECT user_id, score, completed_tasks_count, overdue_tasks_count, last_updated
                FROM performance_scores WHERE user_id = ?
                """,
                (user_id,),
            )
            row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise PersistenceError(f"Failed to query performance score: {e}") from e
        if row is None:
            return None
        return PerformanceScore(
            user_id=row[0],
            score=row[1],
            completed_tasks_count=row[2],
            overdue_tasks_count=row[3],
            last_updated=datetime.fromisoformat(row[4]),
        )
