"""NotificationDispatcher -- 通知扇出

每个去重后的接收者恰好一条通知，有界并发投递；
单个接收者失败被记录到 DeliveryResult 并写日志，不重试，不向上抛出。
"""

from collections.abc import Iterable
from typing import Protocol

import structlog

from .config import NOTIFICATION_TITLE_PREVIEW_LENGTH
from .fanout import bounded_gather
from .models import DeliveryResult, Notification, NotificationType, Task

log = structlog.get_logger()


class NotificationSender(Protocol):
    """通知传输协议（HTTP 客户端 / 日志适配器）"""

    async def send(self, notification: Notification) -> None:
        """投递单条通知，失败时抛出异常"""
        ...


# 通知类型 -> (标题, 正文模板)
_MESSAGES: dict[NotificationType, tuple[str, str]] = {
    NotificationType.TASK_ASSIGNED: ("New task assigned", "You have been assigned to '{title}'"),
    NotificationType.TASK_UPDATED: ("Task updated", "Task '{title}' has been updated"),
    NotificationType.TASK_COMPLETED: ("Task completed", "Task '{title}' has been completed"),
    NotificationType.TASK_DELETED: ("Task deleted", "Task '{title}' has been deleted"),
    NotificationType.TASK_OVERDUE: ("Task overdue", "Task '{title}' is past its due date"),
}


def _preview(title: str) -> str:
    if len(title) <= NOTIFICATION_TITLE_PREVIEW_LENGTH:
        return title
    return title[: NOTIFICATION_TITLE_PREVIEW_LENGTH - 3] + "..."


def build_notification(event: NotificationType, task: Task, user_id: str) -> Notification:
    """为单个接收者构造通知"""
    title, template = _MESSAGES.get(
        event,
        (str(event), "Task '{title}' has changed"),
    )
    return Notification(
        user_id=user_id,
        title=title,
        message=template.format(title=_preview(task.title)),
        type=event,
        related_task_id=task.task_id,
    )


class NotificationDispatcher:
    """通知分发器"""

    def __init__(self, sender: NotificationSender, concurrency: int = 8) -> None:
        """
        Args:
            sender: 通知传输实现
            concurrency: 最大并发投递数
        """
        self._sender = sender
        self._concurrency = concurrency

    async def notify(
        self,
        event: NotificationType,
        task: Task,
        recipients: Iterable[str],
    ) -> list[DeliveryResult]:
        """向每个接收者投递一条通知

        Args:
            event: 通知类型
            task: 关联任务
            recipients: 接收者 ID（自动去重，保持首次出现顺序）

        Returns:
            每个接收者一条 DeliveryResult
        """
        unique = list(dict.fromkeys(r for r in recipients if r))
        if not unique:
            return []

        notifications = [build_notification(event, task, user_id) for user_id in unique]
        outcomes = await bounded_gather(notifications, self._sender.send, self._concurrency)

        results: list[DeliveryResult] = []
        for notification, outcome in outcomes:
            if isinstance(outcome, Exception):
                log.warning(
                    "notification_delivery_failed",
                    task_id=task.task_id,
                    user_id=notification.user_id,
                    notification_type=event.value,
                    error_type=type(outcome).__name__,
                    error=str(outcome),
                )
                results.append(
                    DeliveryResult(
                        user_id=notification.user_id,
                        notification=notification,
                        delivered=False,
                        error_type=type(outcome).__name__,
                        error_message=str(outcome),
                    )
                )
            else:
                results.append(
                    DeliveryResult(
                        user_id=notification.user_id,
                        notification=notification,
                        delivered=True,
                    )
                )

        delivered = sum(1 for r in results if r.delivered)
        log.info(
            "notifications_dispatched",
            task_id=task.task_id,
            notification_type=event.value,
            attempted=len(results),
            delivered=delivered,
        )
        return results
