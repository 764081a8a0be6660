"""TaskStore SQLite 实现

整体替换写入 + version 比较并交换（乐观并发控制）。
aiosqlite 异常统一包装为 PersistenceError。
"""

import json
from collections.abc import Iterable
from datetime import datetime

import aiosqlite

from ..exceptions import ConflictError, NotFoundError, PersistenceError
from ..models.task import Attachment, SubTask, Task
from ..models.user import AssignedUser, CreatorInfo

_TASK_COLUMNS = (
    "task_id, title, description, status, priority, category, due_date, team_id, "
    "created_by, assigned_users, sub_tasks, dependencies, attachments, is_locked, "
    "completed_date, created_at, updated_at, version"
)


def _dump_list(items) -> str:
    return json.dumps([item.model_dump(mode="json") for item in items], ensure_ascii=False)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class SqliteTaskStore:
    """TaskStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_task(self, task: Task) -> Task:
        """创建任务记录"""
        try:
            await self._conn.execute(
                f"""
                INSERT INTO tasks ({_TASK_COLUMNS}, created_by_id)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (*self._task_params(task), task.version, task.created_by.user_id),
            )
            await self._conn.commit()
        except aiosqlite.Error as e:
            await self._conn.rollback()
            raise PersistenceError(f"Failed to create task {task.task_id}: {e}") from e
        return task

    async def get_task(self, task_id: str) -> Task | None:
        """根据 task_id 查询任务"""
        rows = await self._fetch(
            f"SELECT {_TASK_COLUMNS} FROM tasks WHERE task_id = ?",
            (task_id,),
        )
        return rows[0] if rows else None

    async def update_task(self, task: Task, expected_version: int) -> Task:
        """整体替换任务（createdBy 不可变）

        Raises:
            NotFoundError: 任务不存在
            ConflictError: 存储版本与 expected_version 不一致
            PersistenceError: 数据库写入失败
        """
        stored = task.model_copy(update={"version": expected_version + 1})
        try:
            cursor = await self._conn.execute(
                """
                UPDATE tasks
                SET title = ?, description = ?, status = ?, priority = ?, category = ?,
                    due_date = ?, team_id = ?, created_by = ?, assigned_users = ?,
                    sub_tasks = ?, dependencies = ?, attachments = ?, is_locked = ?,
                    completed_date = ?, created_at = ?, updated_at = ?, version = ?
                WHERE task_id = ? AND version = ?
                """,
                (
                    *self._task_params(stored)[1:],
                    stored.version,
                    stored.task_id,
                    expected_version,
                ),
            )
            updated = cursor.rowcount
            if updated == 0:
                await self._conn.rollback()
            else:
                await self._conn.commit()
        except aiosqlite.Error as e:
            await self._conn.rollback()
            raise PersistenceError(f"Failed to update task {task.task_id}: {e}") from e

        if updated == 0:
            current = await self.get_task(task.task_id)
            if current is None:
                raise NotFoundError("Task", task.task_id)
            raise ConflictError(task.task_id, expected_version, current.version)
        return stored

    async def delete_task(self, task_id: str) -> bool:
        """删除任务记录"""
        try:
            cursor = await self._conn.execute(
                "DELETE FROM tasks WHERE task_id = ?",
                (task_id,),
            )
            await self._conn.commit()
        except aiosqlite.Error as e:
            await self._conn.rollback()
            raise PersistenceError(f"Failed to delete task {task_id}: {e}") from e
        return cursor.rowcount > 0

    async def query_by_user_id(self, user_id: str, assigned_only: bool = False) -> list[Task]:
        """查询用户可见任务，按 created_at 倒序"""
        assigned_clause = (
            "EXISTS (SELECT 1 FROM json_each(tasks.assigned_users) "
            "WHERE json_extract(json_each.value, '$.user_id') = ?)"
        )
        if assigned_only:
            where, params = assigned_clause, (user_id,)
        else:
            where, params = f"created_by_id = ? OR {assigned_clause}", (user_id, user_id)
        return await self._fetch(
            f"SELECT {_TASK_COLUMNS} FROM tasks WHERE {where} ORDER BY created_at DESC",
            params,
        )

    async def query_by_team_id(self, team_id: str) -> list[Task]:
        """查询团队任务，按 created_at 倒序"""
        return await self._fetch(
            f"SELECT {_TASK_COLUMNS} FROM tasks WHERE team_id = ? ORDER BY created_at DESC",
            (team_id,),
        )

    async def query_by_ids(self, task_ids: Iterable[str]) -> list[Task]:
        """按 ID 集合批量查询"""
        ids = list(dict.fromkeys(task_ids))
        if not ids:
            return []
        placeholders = ", ".join("?" for _ in ids)
        return await self._fetch(
            f"SELECT {_TASK_COLUMNS} FROM tasks WHERE task_id IN ({placeholders})",
            tuple(ids),
        )

    async def _fetch(self, sql: str, params: tuple) -> list[Task]:
        try:
            cursor = await self._conn.execute(sql, params)
            rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise PersistenceError(f"Failed to query tasks: {e}") from e
        return [self._row_to_task(row) for row in rows]

    @staticmethod
    def _task_params(task: Task) -> tuple:
        """按 _TASK_COLUMNS 顺序（不含 version）生成参数"""
        return (
            task.task_id,
            task.title,
            task.description,
            task.status.value,
            task.priority.value,
            task.category,
            task.due_date.isoformat(),
            task.team_id,
            task.created_by.model_dump_json(),
            _dump_list(task.assigned_users),
            _dump_list(task.sub_tasks),
            json.dumps(task.dependencies),
            _dump_list(task.attachments),
            int(task.is_locked),
            _iso(task.completed_date),
            task.created_at.isoformat(),
            task.updated_at.isoformat(),
        )

    @staticmethod
    def _row_to_task(row: aiosqlite.Row) -> Task:
        """将数据库行转换为 Task 模型"""
        return Task(
            task_id=row[0],
            title=row[1],
            description=row[2],
            status=row[3],
            priority=row[4],
            category=row[5],
            due_date=datetime.fromisoformat(row[6]),
            team_id=row[7],
            created_by=CreatorInfo(**json.loads(row[8])),
            assigned_users=[AssignedUser(**u) for u in json.loads(row[9])],
            sub_tasks=[SubTask(**s) for s in json.loads(row[10])],
            dependencies=json.loads(row[11]),
            attachments=[Attachment(**a) for a in json.loads(row[12])],
            is_locked=bool(row[13]),
            completed_date=datetime.fromisoformat(row[14]) if row[14] else None,
            created_at=datetime.fromisoformat(row[15]),
            updated_at=datetime.fromisoformat(row[16]),
            version=row[17],
        )
