"""Core 异常体系

校验 / 不存在 / 无权限 / 完成受阻 / 锁定 / 冲突 在落盘前检测并短路本次变更；
PersistenceError 中止变更且不重试；
NotificationDeliveryError / PerformanceUpdateError 仅记录日志，不影响已提交的变更。
"""

from typing import Any

from .models.enums import CompletionBlockedReason


class JobTrackError(Exception):
    """JobTrack 基础异常"""

    code = "INTERNAL_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(JobTrackError):
    """字段缺失或非法（空标题、未知分配用户、非法依赖等）"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None, **details: Any) -> None:
        """
        Args:
            message: 错误描述
            field: 出错字段（线上 camelCase 名称）
            **details: 额外字段级细节
        """
        super().__init__(message)
        self.field = field
        self.details = details


class AuthenticationError(JobTrackError):
    """缺少调用者身份"""

    code = "UNAUTHENTICATED"


class NotFoundError(JobTrackError):
    """task / user / team / subtask ID 无法解析"""

    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity} with id {entity_id} does not exist")
        self.entity = entity
        self.entity_id = entity_id


class ForbiddenError(JobTrackError):
    """非创建者尝试更新或删除"""

    code = "FORBIDDEN"


class CompletionBlockedError(JobTrackError):
    """完成操作被拒绝，reason 透传给调用方"""

    code = "COMPLETION_BLOCKED"

    def __init__(self, reason: CompletionBlockedReason, message: str = "") -> None:
        super().__init__(message or f"Task cannot be completed: {reason.value}")
        self.reason = reason


class TaskLockedError(JobTrackError):
    """任务处于终态（completed / overdue），拒绝变更"""

    code = "TASK_LOCKED"

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task {task_id} is locked")
        self.task_id = task_id


class ConflictError(JobTrackError):
    """乐观并发冲突：写入的基线版本与当前存储版本不一致"""

    code = "VERSION_CONFLICT"

    def __init__(self, task_id: str, expected_version: int, actual_version: int | None) -> None:
        super().__init__(
            f"Task {task_id} version mismatch: expected {expected_version}, "
            f"current {actual_version}"
        )
        self.task_id = task_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class PersistenceError(JobTrackError):
    """存储层失败，原样上抛，不重试"""

    code = "PERSISTENCE_ERROR"


class NotificationDeliveryError(JobTrackError):
    """单个接收者通知投递失败，仅记录"""

    code = "NOTIFICATION_DELIVERY_FAILED"


class PerformanceUpdateError(JobTrackError):
    """单个用户绩效重算失败，仅记录"""

    code = "PERFORMANCE_UPDATE_FAILED"

    def __init__(self, user_id: str, original_error: Exception) -> None:
        super().__init__(
            f"Performance update failed for user {user_id}: {original_error}"
        )
        self.user_id = user_id
        self.original_error = original_error
