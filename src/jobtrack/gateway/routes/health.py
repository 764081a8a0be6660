"""健康检查路由

GET /health: Liveness 检查，永远返回 200。
GET /ready: Readiness 检查，包含 SQLite 连通性、附件目录、磁盘空间；
         profile=full 时额外探测通知服务。
"""

import shutil
from pathlib import Path

import aiosqlite
import structlog
from fastapi import APIRouter, Query, Request
from jobtrack.core.store import verify_wal_mode
from starlette.responses import JSONResponse

log = structlog.get_logger()

router = APIRouter()


@router.get("/health")
async def health():
    """Liveness 检查 -- 永远返回 200"""
    return {"status": "ok"}


@router.get("/ready")
async def ready(
    request: Request,
    profile: str | None = Query(
        default=None,
        description="检查配置：core（默认）仅核心检查；full 额外探测通知服务",
    ),
):
    """Readiness 检查 -- 验证核心依赖可用性

    检查项：
    1. sqlite: 数据库连通性（sqlite_wal 仅作信息展示）
    2. attachments_dir: 附件目录可访问性
    3. disk_space_mb: 磁盘剩余空间
    4. notification_api: 根据 profile 决定是否探测
    """
    effective_profile = profile or "core"
    store_group = request.app.state.store_group

    checks: dict[str, str | int] = {}
    all_ok = True

    # 1. SQLite 连通性检查
    try:
        cursor = await store_group.conn.execute("SELECT 1")
        await cursor.fetchone()
        checks["sqlite"] = "ok"
        checks["sqlite_wal"] = "ok" if await verify_wal_mode(store_group.conn) else "disabled"
    except aiosqlite.Error as e:
        checks["sqlite"] = f"error: {e}"
        all_ok = False

    # 2. 附件目录检查
    attachments_path = Path(store_group.attachments_dir)
    if attachments_path.is_dir():
        checks["attachments_dir"] = "ok"
    else:
        checks["attachments_dir"] = "error: directory does not exist"
        all_ok = False

    # 3. 磁盘空间检查
    try:
        disk_usage = shutil.disk_usage(attachments_path if attachments_path.exists() else "/")
        checks["disk_space_mb"] = disk_usage.free // (1024 * 1024)
    except OSError:
        checks["disk_space_mb"] = 0
        all_ok = False

    # 4. 通知服务探测
    if effective_profile == "full":
        sender = getattr(request.app.state, "notification_sender", None)
        if sender is not None and await sender.health_check():
            checks["notification_api"] = "ok"
        else:
            checks["notification_api"] = "unreachable"
            all_ok = False
    else:
        checks["notification_api"] = "skipped"

    status_code = 200 if all_ok else 503
    if not all_ok:
        log.warning("readiness_check_failed", checks=checks)

    return JSONResponse(
        status_code=status_code,
        content={
            "status": "ready" if all_ok else "not_ready",
            "profile": effective_profile,
            "checks": checks,
        },
    )
