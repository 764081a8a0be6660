"""JobTrack Notify -- 通知传输层

jobtrack.notify 的公开接口导出。
"""

from .client import HttpNotificationSender

# 配置
from .config import NotificationConfig, load_notification_config

# 异常
from .exceptions import NotificationApiUnreachableError, NotificationRejectedError
from .log_adapter import LoggingNotificationSender


def create_notification_sender(
    config: NotificationConfig,
) -> HttpNotificationSender | LoggingNotificationSender:
    """按配置模式创建通知传输实现"""
    if config.mode == "http":
        return HttpNotificationSender(
            api_base_url=config.api_base_url,
            api_key=config.api_key.get_secret_value(),
            timeout_s=config.timeout_s,
        )
    return LoggingNotificationSender()


__all__ = [
    "HttpNotificationSender",
    "LoggingNotificationSender",
    "NotificationConfig",
    "load_notification_config",
    "create_notification_sender",
    "NotificationApiUnreachableError",
    "NotificationRejectedError",
]
