"""配置常量模块 -- 可通过环境变量覆盖

包含数据库路径、附件目录、缓存 TTL、扇出并发度等可配置常量。
"""

import os
from pathlib import Path


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("JOBTRACK_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "JOBTRACK_DB_PATH",
        str(_get_base_dir() / "sqlite" / "jobtrack.db"),
    )


def get_attachments_dir() -> Path:
    """获取附件文件存储目录"""
    return Path(
        os.environ.get(
            "JOBTRACK_ATTACHMENTS_DIR",
            str(_get_base_dir() / "uploads"),
        )
    )


def get_cache_ttl_s() -> float:
    """读缓存默认 TTL（秒）"""
    return float(os.environ.get("JOBTRACK_CACHE_TTL_S", "600"))


def get_fanout_concurrency() -> int:
    """通知 / 绩效扇出的最大并发数"""
    return max(1, int(os.environ.get("JOBTRACK_FANOUT_CONCURRENCY", "8")))


# 读接口 Cache-Control max-age（秒）
READ_MAX_AGE_S: int = int(os.environ.get("JOBTRACK_READ_MAX_AGE_S", "60"))

# 关闭时等待后台副作用完成的最长时间（秒）
SIDE_EFFECT_SHUTDOWN_TIMEOUT_S: float = float(
    os.environ.get("JOBTRACK_SIDE_EFFECT_SHUTDOWN_TIMEOUT_S", "5")
)

# 通知正文中任务标题的截断长度
NOTIFICATION_TITLE_PREVIEW_LENGTH: int = 80

# 附件 URL 前缀
ATTACHMENT_URL_PREFIX: str = "/uploads"
