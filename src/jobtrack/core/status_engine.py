"""StatusEngine -- 派生状态计算与完成校验（纯函数）

所有函数不做 I/O、不修改入参，返回新的 Task 副本。
overdue 为时间驱动的派生状态，在每次读写时惰性检查，无后台时钟。
"""

from collections.abc import Mapping
from datetime import datetime

from .exceptions import CompletionBlockedError, NotFoundError, TaskLockedError, ValidationError
from .models import (
    TERMINAL_STATES,
    Attachment,
    CompletionBlockedReason,
    SubTask,
    Task,
    TaskStatus,
    validate_transition,
)


def is_past_due(task: Task, now: datetime) -> bool:
    return now > task.due_date


def compute_derived_status(task: Task, now: datetime) -> TaskStatus:
    """计算派生状态

    规则（按优先级）：
    1. now > dueDate 且未完成 -> overdue
    2. completed 为终态，保持
    3. 已落盘的 overdue 为终态，保持（延长截止时间不会复活任务）
    4. 无子任务 -> 保留当前非终态状态（默认 todo）
    5. 无子任务完成 -> todo；部分或全部完成 -> in-progress（从不自动完成）
    """
    if is_past_due(task, now) and task.status != TaskStatus.COMPLETED:
        return TaskStatus.OVERDUE
    if task.status in TERMINAL_STATES:
        return task.status

    total = len(task.sub_tasks)
    if total == 0:
        return TaskStatus.IN_PROGRESS if task.status == TaskStatus.IN_PROGRESS else TaskStatus.TODO
    if task.completed_subtask_count == 0:
        return TaskStatus.TODO
    return TaskStatus.IN_PROGRESS


def refresh_task(task: Task, now: datetime) -> Task:
    """惰性应用 overdue 规则并保持锁定不变式

    只处理时间驱动的流转，不按子任务重算（子任务推导只在写子任务时发生）。
    """
    status = task.status
    if is_past_due(task, now) and status not in TERMINAL_STATES:
        status = TaskStatus.OVERDUE

    locked = task.is_locked or status in TERMINAL_STATES
    if status == task.status and locked == task.is_locked:
        return task
    return task.model_copy(update={"status": status, "is_locked": locked})


def apply_subtask_toggle(task: Task, subtask_id: str, now: datetime) -> Task:
    """翻转子任务完成标记并重算状态

    Raises:
        TaskLockedError: 任务已锁定
        NotFoundError: 子任务不存在
    """
    task = refresh_task(task, now)
    if task.is_locked:
        raise TaskLockedError(task.task_id)

    found = False
    sub_tasks: list[SubTask] = []
    for sub in task.sub_tasks:
        if sub.subtask_id == subtask_id:
            found = True
            completed = not sub.completed
            sub = sub.model_copy(
                update={
                    "completed": completed,
                    "completed_date": now if completed else None,
                }
            )
        sub_tasks.append(sub)

    if not found:
        raise NotFoundError("SubTask", subtask_id)

    toggled = task.model_copy(update={"sub_tasks": sub_tasks})
    return toggled.model_copy(update={"status": compute_derived_status(toggled, now)})


def validate_completion(
    task: Task,
    dependency_statuses: Mapping[str, TaskStatus],
    now: datetime,
) -> Task:
    """校验并执行完成流转

    Args:
        task: 当前任务
        dependency_statuses: 依赖任务 ID -> 派生状态。已删除的依赖不在映射中，不再阻塞完成
        now: 当前时间

    Returns:
        status=completed、completedDate=now、isLocked=True 的任务副本

    Raises:
        CompletionBlockedError: 终态 / 子任务未完成 / 依赖未完成
    """
    task = refresh_task(task, now)
    if task.status in TERMINAL_STATES:
        raise CompletionBlockedError(CompletionBlockedReason.ALREADY_TERMINAL)

    if any(not s.completed for s in task.sub_tasks):
        raise CompletionBlockedError(CompletionBlockedReason.SUBTASKS_INCOMPLETE)

    incomplete = [
        dep_id
        for dep_id in task.dependencies
        if dep_id in dependency_statuses
        and dependency_statuses[dep_id] != TaskStatus.COMPLETED
    ]
    if incomplete:
        raise CompletionBlockedError(
            CompletionBlockedReason.DEPENDENCIES_INCOMPLETE,
            f"Task cannot be completed: dependencies not completed: {', '.join(incomplete)}",
        )

    return task.model_copy(
        update={
            "status": TaskStatus.COMPLETED,
            "completed_date": now,
            "is_locked": True,
        }
    )


def validate_status_change(task: Task, new_status: TaskStatus) -> None:
    """校验通用状态接口的目标状态

    Raises:
        TaskLockedError: 任务已锁定
        ValidationError: 目标为 completed（须走完成接口）或 overdue（仅派生）
    """
    if task.is_locked or task.status in TERMINAL_STATES:
        raise TaskLockedError(task.task_id)
    if new_status == TaskStatus.COMPLETED:
        raise ValidationError(
            "Status 'completed' can only be set through the complete endpoint",
            field="status",
        )
    if new_status == TaskStatus.OVERDUE:
        raise ValidationError(
            "Status 'overdue' is derived from the due date and cannot be set",
            field="status",
        )


def apply_status_change(task: Task, new_status: TaskStatus, now: datetime) -> Task:
    task = refresh_task(task, now)
    validate_status_change(task, new_status)
    if new_status != task.status and not validate_transition(task.status, new_status):
        raise ValidationError(
            f"Cannot change status from '{task.status.value}' to '{new_status.value}'",
            field="status",
        )
    return task.model_copy(update={"status": new_status})


def apply_attachment_add(task: Task, attachment: Attachment, now: datetime) -> Task:
    """追加附件，锁定任务拒绝"""
    task = refresh_task(task, now)
    if task.is_locked:
        raise TaskLockedError(task.task_id)
    return task.model_copy(update={"attachments": [*task.attachments, attachment]})


def _subtask_state(sub_tasks: list[SubTask]) -> list[tuple[str, str, bool]]:
    return [(s.subtask_id, s.title, s.completed) for s in sub_tasks]


def apply_full_update(
    existing: Task,
    candidate: Task,
    now: datetime,
    requested_status: TaskStatus | None = None,
) -> Task:
    """整体替换的状态处理

    candidate 已由调用方保留 id / createdBy / createdAt / attachments。
    未锁定任务：状态按提交的子任务重新推导，截止时间已过则自动转 overdue。
    已锁定任务：子任务、依赖与截止时间不可变，状态 / 锁定 / 完成时间沿用原值。

    Raises:
        TaskLockedError: 已锁定任务的子任务、依赖或截止时间被修改
        ValidationError: 通过整体更新请求 completed
    """
    existing = refresh_task(existing, now)

    if existing.is_locked:
        if (
            _subtask_state(candidate.sub_tasks) != _subtask_state(existing.sub_tasks)
            or set(candidate.dependencies) != set(existing.dependencies)
            or candidate.due_date != existing.due_date
        ):
            raise TaskLockedError(existing.task_id)
        return candidate.model_copy(
            update={
                "sub_tasks": existing.sub_tasks,
                "status": existing.status,
                "is_locked": True,
                "completed_date": existing.completed_date,
            }
        )

    if requested_status == TaskStatus.COMPLETED:
        raise ValidationError(
            "Status 'completed' can only be set through the complete endpoint",
            field="status",
        )

    previous = {s.subtask_id: s for s in existing.sub_tasks}
    sub_tasks = []
    for sub in candidate.sub_tasks:
        if sub.completed and sub.completed_date is None:
            before = previous.get(sub.subtask_id)
            stamp = before.completed_date if before and before.completed else None
            sub = sub.model_copy(update={"completed_date": stamp or now})
        elif not sub.completed and sub.completed_date is not None:
            sub = sub.model_copy(update={"completed_date": None})
        sub_tasks.append(sub)

    base_status = (
        requested_status
        if requested_status in (TaskStatus.TODO, TaskStatus.IN_PROGRESS)
        else existing.status
    )
    base = candidate.model_copy(
        update={
            "sub_tasks": sub_tasks,
            "status": base_status,
            "is_locked": False,
            "completed_date": None,
        }
    )
    status = compute_derived_status(base, now)
    return base.model_copy(
        update={"status": status, "is_locked": status in TERMINAL_STATES}
    )
