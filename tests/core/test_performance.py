"""绩效计算单元测试

测试内容：
1. 单任务得分：提前 / 延期 / 逾期 / 多人均分
2. 归一化与 0-100 截断，无任务为 100
3. PerformanceRecalculator 落盘与失败隔离
"""

from datetime import timedelta

import pytest
from jobtrack.core.exceptions import PerformanceUpdateError
from jobtrack.core.models import AssignedUser, TaskPriority, TaskStatus
from jobtrack.core.performance import (
    PerformanceRecalculator,
    calculate_task_score,
    calculate_user_performance,
    max_task_score,
)


def _completed(make_task, clock, days_early: float, **overrides):
    due = clock.now + timedelta(days=3)
    return make_task(
        status=TaskStatus.COMPLETED,
        is_locked=True,
        due_date=due,
        completed_date=due - timedelta(days=days_early),
        assigned_users=[AssignedUser(user_id="u-bob")],
        **overrides,
    )


class TestTaskScore:
    def test_early_completion_bonus(self, make_task, clock):
        task = _completed(make_task, clock, days_early=2)
        assert calculate_task_score(task, clock.now) == pytest.approx(20 * 1.04)

    def test_late_completion_is_penalized(self, make_task, clock):
        task = _completed(make_task, clock, days_early=-2)
        score = calculate_task_score(task, clock.now)
        assert score == pytest.approx(20 * 0.97)
        assert score < 20

    def test_overdue_is_negative(self, make_task, clock):
        task = make_task(
            status=TaskStatus.OVERDUE,
            due_date=clock.now - timedelta(days=2),
            priority=TaskPriority.HIGH,
        )
        assert calculate_task_score(task, clock.now) == pytest.approx(-(30 * 2 * 0.05))

    def test_active_task_scores_zero(self, make_task, clock):
        assert calculate_task_score(make_task(), clock.now) == 0.0

    def test_score_shared_between_assignees(self, make_task, clock):
        task = _completed(make_task, clock, days_early=0).model_copy(
            update={"assigned_users": [AssignedUser(user_id="u-bob"), AssignedUser(user_id="u-carol")]}
        )
        assert calculate_task_score(task, clock.now) == pytest.approx(10.0)
        assert max_task_score(task) == pytest.approx(11.0)


class TestUserPerformance:
    """用户绩效分"""

    def test_no_tasks_scores_100(self, clock):
        score = calculate_user_performance("u-bob", [], clock.now)
        assert score.score == 100.0
        assert score.completed_tasks_count == 0

    def test_normalized_against_max(self, make_task, clock):
        tasks = [_completed(make_task, clock, days_early=2)]
        score = calculate_user_performance("u-bob", tasks, clock.now)
        # 20.8 / 22
        assert score.score == 94.55
        assert score.completed_tasks_count == 1

    def test_overdue_clamped_to_zero(self, make_task, clock):
        task = make_task(due_date=clock.now - timedelta(days=10))
        score = calculate_user_performance("u-bob", [task], clock.now)
        assert score.score == 0.0
        assert score.overdue_tasks_count == 1

    def test_recomputation_is_idempotent(self, make_task, clock):
        tasks = [_completed(make_task, clock, days_early=1), make_task()]
        first = calculate_user_performance("u-bob", tasks, clock.now)
        second = calculate_user_performance("u-bob", tasks, clock.now)
        assert first == second


class _FailingTaskStore:
    def __init__(self, failing_user: str, delegate) -> None:
        self._failing_user = failing_user
        self._delegate = delegate

    async def query_by_user_id(self, user_id: str, assigned_only: bool = False):
        if user_id == self._failing_user:
            raise RuntimeError("database unavailable")
        return await self._delegate.query_by_user_id(user_id, assigned_only=assigned_only)


class TestPerformanceRecalculator:
    async def test_recalculate_persists_score(self, store_group, make_task, clock):
        await store_group.task_store.create_task(_completed(make_task, clock, days_early=2))
        recalculator = PerformanceRecalculator(
            store_group.task_store, store_group.performance_store, clock=clock
        )

        score = await recalculator.recalculate_for_user("u-bob")

        assert score.score == 94.55
        stored = await store_group.performance_store.get_score("u-bob")
        assert stored.score == 94.55
        assert stored.last_updated == clock.now

    async def test_only_assigned_tasks_count(self, store_group, make_task, clock):
        """u-alice 是创建者但未被分配，不计入其绩效"""
        await store_group.task_store.create_task(_completed(make_task, clock, days_early=2))
        recalculator = PerformanceRecalculator(
            store_group.task_store, store_group.performance_store, clock=clock
        )
        score = await recalculator.recalculate_for_user("u-alice")
        assert score.score == 100.0

    async def test_failure_wrapped(self, store_group, clock):
        recalculator = PerformanceRecalculator(
            _FailingTaskStore("u-bob", store_group.task_store),
            store_group.performance_store,
            clock=clock,
        )
        with pytest.raises(PerformanceUpdateError) as exc_info:
            await recalculator.recalculate_for_user("u-bob")
        assert isinstance(exc_info.value.original_error, RuntimeError)

    async def test_one_failing_user_does_not_block_others(self, store_group, clock):
        recalculator = PerformanceRecalculator(
            _FailingTaskStore("u-bob", store_group.task_store),
            store_group.performance_store,
            clock=clock,
        )

        results = await recalculator.recalculate_for_users(["u-bob", "u-carol", "u-carol"])

        assert set(results) == {"u-bob", "u-carol"}
        assert isinstance(results["u-bob"], PerformanceUpdateError)
        assert results["u-carol"].score == 100.0
        assert await store_group.performance_store.get_score("u-carol") is not None
        assert await store_group.performance_store.get_score("u-bob") is None
