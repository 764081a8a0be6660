"""枚举定义

包含 TaskStatus 状态机、TaskPriority、NotificationType、CompletionBlockedReason，
以及 VALID_TRANSITIONS 合法流转映射和 TERMINAL_STATES 终态集合。
"""

from enum import StrEnum


class TaskStatus(StrEnum):
    """Task 状态机"""

    # 活跃状态
    TODO = "todo"
    IN_PROGRESS = "in-progress"

    # 终态
    COMPLETED = "completed"
    OVERDUE = "overdue"


# 合法状态流转
# completed 只能经由显式完成操作进入；overdue 只能由时间驱动自动进入
VALID_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.TODO: {
        TaskStatus.IN_PROGRESS,
        TaskStatus.COMPLETED,
        TaskStatus.OVERDUE,
    },
    TaskStatus.IN_PROGRESS: {
        TaskStatus.TODO,
        TaskStatus.COMPLETED,
        TaskStatus.OVERDUE,
    },
    # 终态不可再流转
    TaskStatus.COMPLETED: set(),
    TaskStatus.OVERDUE: set(),
}

TERMINAL_STATES: set[TaskStatus] = {
    TaskStatus.COMPLETED,
    TaskStatus.OVERDUE,
}

# 可通过通用状态接口设置的状态
USER_SETTABLE_STATES: set[TaskStatus] = {
    TaskStatus.TODO,
    TaskStatus.IN_PROGRESS,
}


class TaskPriority(StrEnum):
    """任务优先级"""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class NotificationType(StrEnum):
    """通知类型（封闭枚举）"""

    TASK_ASSIGNED = "TaskAssigned"
    TASK_UPDATED = "TaskUpdated"
    TASK_COMPLETED = "TaskCompleted"
    TASK_DELETED = "TaskDeleted"
    TASK_OVERDUE = "TaskOverdue"
    REMINDER = "Reminder"
    MENTION = "Mention"
    MESSAGE = "Message"
    CALENDAR_EVENT_CREATED = "CalendarEventCreated"
    CALENDAR_EVENT_UPDATED = "CalendarEventUpdated"
    CALENDAR_EVENT_DELETED = "CalendarEventDeleted"
    TEAM_STATUS_CREATED = "TeamStatusCreated"
    TEAM_STATUS_UPDATED = "TeamStatusUpdated"


class CompletionBlockedReason(StrEnum):
    """完成操作被拒绝的原因"""

    ALREADY_TERMINAL = "AlreadyTerminal"
    SUBTASKS_INCOMPLETE = "SubtasksIncomplete"
    DEPENDENCIES_INCOMPLETE = "DependenciesIncomplete"


def validate_transition(from_status: TaskStatus, to_status: TaskStatus) -> bool:
    """验证状态流转是否合法

    Args:
        from_status: 当前状态
        to_status: 目标状态

    Returns:
        True 如果流转合法，否则 False
    """
    allowed = VALID_TRANSITIONS.get(from_status, set())
    return to_status in allowed
