"""JobTrack Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .base import WireModel, ensure_utc
from .enums import (
    TERMINAL_STATES,
    USER_SETTABLE_STATES,
    VALID_TRANSITIONS,
    CompletionBlockedReason,
    NotificationType,
    TaskPriority,
    TaskStatus,
    validate_transition,
)
from .notification import DeliveryResult, Notification
from .performance import PerformanceScore, TaskStatsAggregate
from .task import Attachment, SubTask, Task
from .user import AssignedUser, CreatorInfo, User

__all__ = [
    # 枚举
    "TaskStatus",
    "TaskPriority",
    "NotificationType",
    "CompletionBlockedReason",
    # 状态机
    "VALID_TRANSITIONS",
    "TERMINAL_STATES",
    "USER_SETTABLE_STATES",
    "validate_transition",
    # Task
    "Task",
    "SubTask",
    "Attachment",
    # User
    "User",
    "AssignedUser",
    "CreatorInfo",
    # Notification
    "Notification",
    "DeliveryResult",
    # Performance
    "PerformanceScore",
    "TaskStatsAggregate",
    # 基础
    "WireModel",
    "ensure_utc",
]
