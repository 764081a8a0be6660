"""PerformanceRecalculator -- 用户绩效分重算

绩效分每次从用户被分配的完整任务集重新推导（非增量），重复计算结果相同。
公式：
- 优先级基础分 high 30 / medium 20 / low 10，按分配人数均分
- 提前完成每天 +2%，延期完成每天 -1.5%，逾期未完成每天 -5%
- 以"全部提前 5 天完成"为满分归一化到 0-100，无任务时为 100
"""

from collections.abc import Callable, Iterable
from datetime import UTC, datetime

import structlog

from .exceptions import PerformanceUpdateError
from .fanout import bounded_gather
from .models import PerformanceScore, Task, TaskPriority, TaskStatus
from .status_engine import refresh_task
from .store.protocols import PerformanceStore, TaskStore

log = structlog.get_logger()

EARLY_COMPLETION_BONUS = 0.02
LATE_COMPLETION_PENALTY = 0.015
OVERDUE_PENALTY = 0.05
MAX_EARLY_DAYS = 5

PRIORITY_SCORES: dict[TaskPriority, int] = {
    TaskPriority.HIGH: 30,
    TaskPriority.MEDIUM: 20,
    TaskPriority.LOW: 10,
}

_SECONDS_PER_DAY = 86400.0


def _share_count(task: Task) -> int:
    return max(1, len(task.assigned_users))


def calculate_task_score(task: Task, now: datetime) -> float:
    """单个任务对被分配用户的得分贡献"""
    base = PRIORITY_SCORES[task.priority]

    if task.status == TaskStatus.COMPLETED:
        completed_at = task.completed_date or now
        days = (task.due_date - completed_at).total_seconds() / _SECONDS_PER_DAY
        if days > 0:
            time_bonus = days * EARLY_COMPLETION_BONUS
        else:
            # days <= 0：延期完成为负向调整
            time_bonus = days * LATE_COMPLETION_PENALTY
        return base * (1 + time_bonus) / _share_count(task)

    if task.status == TaskStatus.OVERDUE:
        overdue_days = (now - task.due_date).total_seconds() / _SECONDS_PER_DAY
        if overdue_days <= 0:
            return 0.0
        return -(base * overdue_days * OVERDUE_PENALTY) / _share_count(task)

    return 0.0


def max_task_score(task: Task) -> float:
    """单个任务可能的最高得分（提前 MAX_EARLY_DAYS 天完成）"""
    base = PRIORITY_SCORES[task.priority]
    return base * (1 + MAX_EARLY_DAYS * EARLY_COMPLETION_BONUS) / _share_count(task)


def calculate_user_performance(user_id: str, tasks: list[Task], now: datetime) -> PerformanceScore:
    """从用户完整任务集推导绩效分

    Args:
        user_id: 用户 ID
        tasks: 用户被分配的全部任务
        now: 计算时间

    Returns:
        PerformanceScore（score 已截断到 0-100）
    """
    tasks = [refresh_task(t, now) for t in tasks]
    completed = sum(1 for t in tasks if t.status == TaskStatus.COMPLETED)
    overdue = sum(1 for t in tasks if t.status == TaskStatus.OVERDUE)

    total = sum(calculate_task_score(t, now) for t in tasks)
    maximum = sum(max_task_score(t) for t in tasks)
    score = 100.0 if maximum <= 0 else max(0.0, min(100.0, total / maximum * 100))

    return PerformanceScore(
        user_id=user_id,
        score=round(score, 2),
        completed_tasks_count=completed,
        overdue_tasks_count=overdue,
        last_updated=now,
    )


class PerformanceRecalculator:
    """绩效重算器 -- 读取任务集、计算、落盘"""

    def __init__(
        self,
        task_store: TaskStore,
        performance_store: PerformanceStore,
        clock: Callable[[], datetime] | None = None,
        concurrency: int = 8,
    ) -> None:
        self._task_store = task_store
        self._performance_store = performance_store
        self._clock = clock or (lambda: datetime.now(UTC))
        self._concurrency = concurrency

    async def recalculate_for_user(self, user_id: str) -> PerformanceScore:
        """重算并保存单个用户的绩效分

        Raises:
            PerformanceUpdateError: 读取任务或保存分数失败
        """
        try:
            tasks = await self._task_store.query_by_user_id(user_id, assigned_only=True)
            score = calculate_user_performance(user_id, tasks, self._clock())
            await self._performance_store.save_score(score)
        except Exception as e:
            raise PerformanceUpdateError(user_id, e) from e

        log.info(
            "performance_recalculated",
            user_id=user_id,
            score=score.score,
            completed=score.completed_tasks_count,
            overdue=score.overdue_tasks_count,
        )
        return score

    async def recalculate_for_users(
        self,
        user_ids: Iterable[str],
    ) -> dict[str, PerformanceScore | PerformanceUpdateError]:
        """有界并发重算多个用户，单个失败只记录

        Returns:
            user_id -> PerformanceScore 或 PerformanceUpdateError
        """
        unique = list(dict.fromkeys(user_ids))
        outcomes = await bounded_gather(unique, self.recalculate_for_user, self._concurrency)

        results: dict[str, PerformanceScore | PerformanceUpdateError] = {}
        for user_id, outcome in outcomes:
            if isinstance(outcome, Exception):
                error = (
                    outcome
                    if isinstance(outcome, PerformanceUpdateError)
                    else PerformanceUpdateError(user_id, outcome)
                )
                log.warning(
                    "performance_update_failed",
                    user_id=user_id,
                    error_type=type(error.original_error).__name__,
                    error=str(error.original_error),
                )
                results[user_id] = error
            else:
                results[user_id] = outcome
        return results
