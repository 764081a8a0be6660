"""SQLite Store 单元测试

测试内容：
1. TaskStore 创建 / 读取 / 整体替换 / 删除
2. 版本比较并交换（ConflictError）
3. 按用户 / 团队 / ID 集合查询
4. UserStore / PerformanceStore
5. 数据库错误包装为 PersistenceError
6. WAL 模式
"""

from datetime import timedelta

import pytest
from jobtrack.core.exceptions import ConflictError, NotFoundError, PersistenceError
from jobtrack.core.models import (
    AssignedUser,
    Attachment,
    PerformanceScore,
    SubTask,
    TaskStatus,
)
from jobtrack.core.store import verify_wal_mode


class TestSqliteTaskStore:
    """TaskStore 基本操作"""

    async def test_create_and_get_round_trips_nested_fields(self, store_group, make_task, clock):
        task = make_task(
            team_id="team-1",
            assigned_users=[AssignedUser(user_id="u-bob", username="bob", department="QA")],
            sub_tasks=[
                SubTask(subtask_id="s1", title="Draft", completed=True, completed_date=clock.now),
                SubTask(subtask_id="s2", title="Review"),
            ],
            dependencies=["dep-1"],
            attachments=[
                Attachment(
                    attachment_id="a1",
                    file_name="notes.txt",
                    file_url="/uploads/t/a1_notes.txt",
                    file_type="text/plain",
                    upload_date=clock.now,
                )
            ],
        )
        await store_group.task_store.create_task(task)

        loaded = await store_group.task_store.get_task(task.task_id)
        assert loaded == task

    async def test_get_missing_returns_none(self, store_group):
        assert await store_group.task_store.get_task("missing") is None

    async def test_update_increments_version(self, store_group, make_task):
        task = make_task()
        await store_group.task_store.create_task(task)

        renamed = task.model_copy(update={"title": "Renamed"})
        stored = await store_group.task_store.update_task(renamed, expected_version=1)
        assert stored.version == 2

        loaded = await store_group.task_store.get_task(task.task_id)
        assert loaded.title == "Renamed"
        assert loaded.version == 2

    async def test_stale_version_raises_conflict(self, store_group, make_task):
        task = make_task()
        await store_group.task_store.create_task(task)
        await store_group.task_store.update_task(
            task.model_copy(update={"title": "First writer"}), expected_version=1
        )

        with pytest.raises(ConflictError) as exc_info:
            await store_group.task_store.update_task(
                task.model_copy(update={"title": "Second writer"}), expected_version=1
            )
        assert exc_info.value.actual_version == 2

        loaded = await store_group.task_store.get_task(task.task_id)
        assert loaded.title == "First writer"

    async def test_update_missing_raises_not_found(self, store_group, make_task):
        with pytest.raises(NotFoundError):
            await store_group.task_store.update_task(make_task(), expected_version=1)

    async def test_delete(self, store_group, make_task):
        task = make_task()
        await store_group.task_store.create_task(task)
        assert await store_group.task_store.delete_task(task.task_id) is True
        assert await store_group.task_store.delete_task(task.task_id) is False
        assert await store_group.task_store.get_task(task.task_id) is None

    async def test_duplicate_id_raises_persistence_error(self, store_group, make_task):
        task = make_task()
        await store_group.task_store.create_task(task)
        with pytest.raises(PersistenceError):
            await store_group.task_store.create_task(task)


class TestTaskQueries:
    """查询"""

    async def test_query_by_user_includes_created_and_assigned(
        self, store_group, make_task, clock
    ):
        created = make_task(title="Created by alice", created_at=clock.now)
        assigned = make_task(
            title="Assigned to alice",
            created_by=created.created_by.model_copy(update={"user_id": "u-bob"}),
            assigned_users=[AssignedUser(user_id="u-alice")],
            created_at=clock.now + timedelta(minutes=1),
        )
        unrelated = make_task(
            created_by=created.created_by.model_copy(update={"user_id": "u-bob"}),
        )
        for task in (created, assigned, unrelated):
            await store_group.task_store.create_task(task)

        visible = await store_group.task_store.query_by_user_id("u-alice")
        # created_at 倒序
        assert [t.task_id for t in visible] == [assigned.task_id, created.task_id]

        only_assigned = await store_group.task_store.query_by_user_id(
            "u-alice", assigned_only=True
        )
        assert [t.task_id for t in only_assigned] == [assigned.task_id]

    async def test_query_by_team(self, store_group, make_task):
        in_team = make_task(team_id="team-1")
        other = make_task(team_id="team-2")
        await store_group.task_store.create_task(in_team)
        await store_group.task_store.create_task(other)

        tasks = await store_group.task_store.query_by_team_id("team-1")
        assert [t.task_id for t in tasks] == [in_team.task_id]

    async def test_query_by_ids_ignores_missing(self, store_group, make_task):
        task = make_task()
        await store_group.task_store.create_task(task)
        tasks = await store_group.task_store.query_by_ids([task.task_id, "missing", task.task_id])
        assert [t.task_id for t in tasks] == [task.task_id]
        assert await store_group.task_store.query_by_ids([]) == []


class TestUserAndPerformanceStores:
    async def test_upsert_user_overwrites_profile(self, store_group, make_user):
        await store_group.user_store.upsert_user(make_user("u-bob"))
        await store_group.user_store.upsert_user(make_user("u-bob", department="QA"))

        user = await store_group.user_store.get_user("u-bob")
        assert user.department == "QA"
        assert await store_group.user_store.list_user_ids() == ["u-bob"]

    async def test_get_users_ignores_unknown(self, store_group, make_user):
        await store_group.user_store.upsert_user(make_user("u-bob"))
        users = await store_group.user_store.get_users(["u-bob", "u-ghost"])
        assert [u.user_id for u in users] == ["u-bob"]
        assert await store_group.user_store.get_user("u-ghost") is None

    async def test_save_and_overwrite_score(self, store_group, clock):
        store = store_group.performance_store
        assert await store.get_score("u-bob") is None

        await store.save_score(
            PerformanceScore(user_id="u-bob", score=80.0, completed_tasks_count=2, last_updated=clock.now)
        )
        await store.save_score(
            PerformanceScore(user_id="u-bob", score=55.5, overdue_tasks_count=1, last_updated=clock.now)
        )

        score = await store.get_score("u-bob")
        assert score.score == 55.5
        assert score.completed_tasks_count == 0
        assert score.overdue_tasks_count == 1


class TestSqliteInit:
    async def test_wal_mode_enabled(self, store_group):
        assert await verify_wal_mode(store_group.conn) is True

    async def test_status_column_stores_wire_value(self, store_group, make_task):
        task = make_task(status=TaskStatus.IN_PROGRESS)
        await store_group.task_store.create_task(task)
        cursor = await store_group.conn.execute(
            "SELECT status, created_by_id FROM tasks WHERE task_id = ?", (task.task_id,)
        )
        row = await cursor.fetchone()
        assert row[0] == "in-progress"
        assert row[1] == "u-alice"
