"""NotificationConfig -- 通知传输配置加载

从环境变量加载配置，非法值记录日志并回退默认值，不阻塞启动。
"""

import os
from typing import Literal

import structlog
from pydantic import BaseModel, Field, SecretStr

log = structlog.get_logger()


class NotificationConfig(BaseModel):
    """通知传输配置 -- 从环境变量加载

    环境变量:
        JOBTRACK_NOTIFY_MODE: 传输模式（http/log）
        JOBTRACK_NOTIFY_API_URL: 通知服务基础 URL（默认 http://localhost:5001）
        JOBTRACK_NOTIFY_API_KEY: 通知服务访问密钥
        JOBTRACK_NOTIFY_TIMEOUT_S: 请求超时（秒，默认 10）
    """

    mode: Literal["http", "log"] = Field(
        default="log",
        description="传输模式：http 调用通知服务 / log 仅记录日志",
    )
    api_base_url: str = Field(
        default="http://localhost:5001",
        description="通知服务基础 URL",
    )
    api_key: SecretStr = Field(
        default=SecretStr(""),
        description="通知服务访问密钥，空值时不发送 Authorization 头",
    )
    timeout_s: float = Field(
        default=10.0,
        gt=0,
        description="单次投递超时（秒）",
    )


def load_notification_config() -> NotificationConfig:
    """从环境变量加载通知配置

    Returns:
        NotificationConfig 实例
    """
    kwargs: dict = {}

    if val := os.environ.get("JOBTRACK_NOTIFY_MODE"):
        if val in ("http", "log"):
            kwargs["mode"] = val
        else:
            log.warning(
                "invalid_notify_mode_config",
                env_var="JOBTRACK_NOTIFY_MODE",
                value=val,
                fallback="log",
            )

    if val := os.environ.get("JOBTRACK_NOTIFY_API_URL"):
        kwargs["api_base_url"] = val

    if val := os.environ.get("JOBTRACK_NOTIFY_API_KEY"):
        kwargs["api_key"] = SecretStr(val)

    if val := os.environ.get("JOBTRACK_NOTIFY_TIMEOUT_S"):
        try:
            timeout = float(val)
            if timeout <= 0:
                raise ValueError(val)
            kwargs["timeout_s"] = timeout
        except ValueError:
            log.warning(
                "invalid_timeout_config",
                env_var="JOBTRACK_NOTIFY_TIMEOUT_S",
                value=val,
                fallback=10.0,
            )

    return NotificationConfig(**kwargs)
