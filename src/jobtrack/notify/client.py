"""HttpNotificationSender -- 通知服务 HTTP 客户端

POST {api_base_url}/api/Notifications，请求体为 camelCase JSON：
{userId, title, message, type, relatedJobId, ...}
"""

import time

import httpx
import structlog

from jobtrack.core.models import Notification

from .exceptions import NotificationApiUnreachableError, NotificationRejectedError

log = structlog.get_logger()

# 健康检查超时（硬编码，应快速响应）
HEALTH_CHECK_TIMEOUT_S = 5

NOTIFICATIONS_PATH = "/api/Notifications"


class HttpNotificationSender:
    """通知服务客户端

    持有一个 httpx.AsyncClient，应用关闭时调用 aclose()。
    """

    def __init__(
        self,
        api_base_url: str = "http://localhost:5001",
        api_key: str = "",
        timeout_s: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            api_base_url: 通知服务基础 URL
            api_key: 访问密钥，空值时不带 Authorization 头
            timeout_s: 请求超时（秒）
            transport: 自定义传输层（测试注入 httpx.MockTransport）
        """
        self._api_base_url = api_base_url.rstrip("/")
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client = httpx.AsyncClient(
            base_url=self._api_base_url,
            headers=headers,
            timeout=timeout_s,
            transport=transport,
        )

    async def send(self, notification: Notification) -> None:
        """投递单条通知

        Raises:
            NotificationApiUnreachableError: 连接失败或超时
            NotificationRejectedError: 通知服务返回非 2xx
        """
        start_time = time.monotonic()
        payload = notification.model_dump(mode="json", by_alias=True)
        try:
            resp = await self._client.post(NOTIFICATIONS_PATH, json=payload)
        except httpx.TransportError as e:
            raise NotificationApiUnreachableError(self._api_base_url, e) from e

        duration_ms = int((time.monotonic() - start_time) * 1000)
        if resp.is_error:
            raise NotificationRejectedError(resp.status_code, resp.text[:200])

        log.debug(
            "notification_sent",
            user_id=notification.user_id,
            notification_type=notification.type.value,
            related_task_id=notification.related_task_id,
            duration_ms=duration_ms,
        )

    async def health_check(self) -> bool:
        """检查通知服务可达性（不抛异常）"""
        try:
            resp = await self._client.get("/health", timeout=HEALTH_CHECK_TIMEOUT_S)
            return resp.status_code == 200
        except httpx.HTTPError as e:
            log.debug("notify_health_check_failed", url=self._api_base_url, error=str(e))
            return False

    async def aclose(self) -> None:
        await self._client.aclose()
