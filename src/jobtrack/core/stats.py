"""任务统计聚合

在查询边界把任务集合显式映射为 TaskStatsAggregate。
"""

from collections.abc import Iterable
from datetime import datetime

from .models import Task, TaskStatsAggregate, TaskStatus
from .status_engine import refresh_task


def aggregate_task_stats(tasks: Iterable[Task], now: datetime) -> TaskStatsAggregate:
    """统计各状态数量、完成率（百分比，1 位小数）与平均完成天数"""
    counts = {status: 0 for status in TaskStatus}
    durations: list[float] = []
    total = 0

    for task in tasks:
        task = refresh_task(task, now)
        total += 1
        counts[task.status] += 1
        if task.status == TaskStatus.COMPLETED and task.completed_date is not None:
            durations.append((task.completed_date - task.created_at).total_seconds() / 86400.0)

    completion_rate = counts[TaskStatus.COMPLETED] / total * 100 if total else 0.0
    average_days = sum(durations) / len(durations) if durations else 0.0

    return TaskStatsAggregate(
        total=total,
        todo=counts[TaskStatus.TODO],
        in_progress=counts[TaskStatus.IN_PROGRESS],
        completed=counts[TaskStatus.COMPLETED],
        overdue=counts[TaskStatus.OVERDUE],
        completion_rate=round(completion_rate, 1),
        average_completion_days=round(average_days, 1),
    )
