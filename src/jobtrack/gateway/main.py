"""FastAPI 应用主文件

app 创建 + lifespan 管理：DB 初始化/关闭、缓存 / 通知 / 绩效组件初始化、
后台副作用执行器的排空与取消、路由注册。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from jobtrack.core.cache import CacheLayer
from jobtrack.core.config import (
    ATTACHMENT_URL_PREFIX,
    SIDE_EFFECT_SHUTDOWN_TIMEOUT_S,
    get_attachments_dir,
    get_cache_ttl_s,
    get_db_path,
    get_fanout_concurrency,
)
from jobtrack.core.notifications import NotificationDispatcher
from jobtrack.core.performance import PerformanceRecalculator
from jobtrack.core.store import create_store_group
from jobtrack.notify import create_notification_sender, load_notification_config

from .errors import register_exception_handlers
from .middleware.logging_config import setup_logfire, setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .middleware.trace_mw import TraceMiddleware
from .routes import health, lifecycle, tasks, teams, users
from .services.side_effects import SideEffectRunner

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时初始化 Store 与协作组件，关闭时排空副作用并清理连接"""
    store_group = await create_store_group(get_db_path(), get_attachments_dir())
    app.state.store_group = store_group

    concurrency = get_fanout_concurrency()
    app.state.cache = CacheLayer(default_ttl=get_cache_ttl_s())

    notify_config = load_notification_config()
    sender = create_notification_sender(notify_config)
    app.state.notification_sender = sender
    app.state.dispatcher = NotificationDispatcher(sender, concurrency=concurrency)
    app.state.recalculator = PerformanceRecalculator(
        store_group.task_store,
        store_group.performance_store,
        concurrency=concurrency,
    )
    app.state.side_effects = SideEffectRunner()
    log.info(
        "app_started",
        notify_mode=notify_config.mode,
        fanout_concurrency=concurrency,
    )

    yield

    abandoned = await app.state.side_effects.shutdown(SIDE_EFFECT_SHUTDOWN_TIMEOUT_S)
    await sender.aclose()
    await store_group.conn.close()
    log.info("app_stopped", side_effects_abandoned=abandoned)


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="JobTrack Gateway",
        version="0.1.0",
        description="JobTrack 任务生命周期与一致性引擎 API",
        lifespan=lifespan,
    )

    # 注册中间件（顺序：先 Trace 后 Logging，Logging 在最外层）
    app.add_middleware(TraceMiddleware)
    app.add_middleware(LoggingMiddleware)

    setup_logging()
    setup_logfire()

    register_exception_handlers(app)

    app.include_router(tasks.router, tags=["tasks"])
    app.include_router(lifecycle.router, tags=["lifecycle"])
    app.include_router(users.router, tags=["users"])
    app.include_router(teams.router, tags=["teams"])
    app.include_router(health.router, tags=["health"])

    # 附件文件（LocalAttachmentStorage 写入的目录）
    app.mount(
        ATTACHMENT_URL_PREFIX,
        StaticFiles(directory=str(get_attachments_dir()), check_dir=False),
        name="uploads",
    )

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
