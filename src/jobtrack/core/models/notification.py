"""Notification Domain Model

每个接收者一条通知，relatedJobId 指向关联任务。
"""

from datetime import UTC, datetime

from pydantic import Field
from ulid import ULID

from .base import WireModel
from .enums import NotificationType


class Notification(WireModel):
    """通知 -- 线上格式 {userId, title, message, type, relatedJobId}"""

    notification_id: str = Field(
        default_factory=lambda: str(ULID()),
        alias="id",
        description="通知 ID",
    )
    user_id: str = Field(description="接收者 ID")
    title: str = Field(description="通知标题")
    message: str = Field(description="通知正文")
    type: NotificationType = Field(description="通知类型")
    related_task_id: str | None = Field(
        default=None,
        alias="relatedJobId",
        description="关联任务 ID",
    )
    is_read: bool = Field(default=False, description="是否已读")
    created_date: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="创建时间",
    )


class DeliveryResult(WireModel):
    """单个接收者的投递结果"""

    user_id: str
    notification: Notification
    delivered: bool
    error_type: str | None = None
    error_message: str | None = None
