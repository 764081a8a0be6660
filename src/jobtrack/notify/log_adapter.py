"""LoggingNotificationSender -- 日志模式通知传输

不依赖外部通知服务：每条通知写一条 structlog 日志并保留在内存中，
供本地开发和测试检查。
"""

import structlog

from jobtrack.core.models import Notification

log = structlog.get_logger()


class LoggingNotificationSender:
    """把通知写入日志的传输实现"""

    def __init__(self) -> None:
        self.sent: list[Notification] = []

    async def send(self, notification: Notification) -> None:
        self.sent.append(notification)
        log.info(
            "notification_logged",
            user_id=notification.user_id,
            notification_type=notification.type.value,
            related_task_id=notification.related_task_id,
            title=notification.title,
        )

    async def health_check(self) -> bool:
        return True

    async def aclose(self) -> None:
        return None
