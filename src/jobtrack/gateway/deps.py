"""依赖注入模块 -- 通过 FastAPI Depends 注入服务实例

Store / 缓存 / 分发器 / 重算器 / 副作用执行器通过 app.state 管理，在 lifespan 中初始化/清理。
TaskService 每个请求构造一次。
"""

from fastapi import Header, Request
from jobtrack.core.exceptions import AuthenticationError, ValidationError
from jobtrack.core.store import StoreGroup

from .services.task_service import TaskService


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_task_service(request: Request) -> TaskService:
    """基于 app.state 中的共享组件构造 TaskService"""
    state = request.app.state
    return TaskService(
        state.store_group,
        cache=state.cache,
        dispatcher=state.dispatcher,
        recalculator=state.recalculator,
        runner=state.side_effects,
        clock=getattr(state, "clock", None),
    )


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """从 X-User-ID 头读取调用者身份（认证由上游完成）"""
    if x_user_id is None or not x_user_id.strip():
        raise AuthenticationError("Missing X-User-ID header")
    return x_user_id.strip()


def get_if_match_version(if_match: str | None = Header(default=None)) -> int | None:
    """解析 If-Match 头中的版本号（接受 "3"、3、W/"3"）"""
    if if_match is None:
        return None
    value = if_match.strip()
    if value.startswith("W/"):
        value = value[2:]
    value = value.strip('"')
    try:
        return int(value)
    except ValueError as e:
        raise ValidationError(
            "If-Match must carry the task version",
            field="If-Match",
            value=if_match,
        ) from e
