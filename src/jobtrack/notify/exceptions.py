"""通知传输异常

均继承 core 的 NotificationDeliveryError，由 NotificationDispatcher 按接收者记录。
"""

from jobtrack.core.exceptions import NotificationDeliveryError


class NotificationApiUnreachableError(NotificationDeliveryError):
    """通知服务不可达（连接失败、超时、DNS 解析失败等）"""

    code = "NOTIFICATION_API_UNREACHABLE"

    def __init__(self, api_url: str, original_error: Exception) -> None:
        """
        Args:
            api_url: 尝试连接的通知服务地址
            original_error: 原始异常
        """
        super().__init__(f"Notification API unreachable: {api_url} -- {original_error}")
        self.api_url = api_url
        self.original_error = original_error


class NotificationRejectedError(NotificationDeliveryError):
    """通知服务返回非 2xx 响应"""

    code = "NOTIFICATION_REJECTED"

    def __init__(self, status_code: int, body: str = "") -> None:
        super().__init__(f"Notification API rejected notification: HTTP {status_code} {body}".rstrip())
        self.status_code = status_code
        self.body = body
