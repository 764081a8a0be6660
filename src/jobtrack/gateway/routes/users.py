"""用户相关路由

GET  /api/users/{user_id}/tasks: 用户创建或被分配的任务
GET  /api/users/{user_id}/assigned-tasks: 用户被分配的任务
GET  /api/users/{user_id}/history: 被分配且已进入终态的任务
GET  /api/users/{user_id}/performance: 绩效分
POST /api/users, PUT /api/users/{user_id}: 用户资料本地镜像
GET  /api/users/{user_id}: 用户资料

资料变更不会回写已有任务中的 AssignedUser 快照，快照只在重新分配时刷新。
"""

import structlog
from fastapi import APIRouter, Depends, Request
from jobtrack.core.exceptions import NotFoundError, ValidationError
from jobtrack.core.models import User
from jobtrack.core.store import StoreGroup
from starlette.responses import JSONResponse
from ulid import ULID

from ..deps import get_store_group, get_task_service
from ..responses import cached_read_response, to_wire, to_wire_list
from ..schemas import UserWriteRequest
from ..services.task_service import TaskService

log = structlog.get_logger()

router = APIRouter()


@router.get("/api/users/{user_id}/tasks")
async def list_user_tasks(
    user_id: str,
    request: Request,
    service: TaskService = Depends(get_task_service),
):
    tasks = await service.list_tasks_for_user(user_id)
    return cached_read_response(request, to_wire_list(tasks))


@router.get("/api/users/{user_id}/assigned-tasks")
async def list_assigned_tasks(
    user_id: str,
    request: Request,
    service: TaskService = Depends(get_task_service),
):
    tasks = await service.list_assigned_tasks(user_id)
    return cached_read_response(request, to_wire_list(tasks))


@router.get("/api/users/{user_id}/history")
async def list_task_history(
    user_id: str,
    request: Request,
    service: TaskService = Depends(get_task_service),
):
    tasks = await service.list_task_history(user_id)
    return cached_read_response(request, to_wire_list(tasks))


@router.get("/api/users/{user_id}/performance")
async def get_performance(
    user_id: str,
    request: Request,
    service: TaskService = Depends(get_task_service),
):
    score = await service.get_performance(user_id)
    return cached_read_response(request, to_wire(score))


@router.get("/api/users/{user_id}")
async def get_user(
    user_id: str,
    store_group: StoreGroup = Depends(get_store_group),
):
    user = await store_group.user_store.get_user(user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return JSONResponse(status_code=200, content=to_wire(user))


@router.post("/api/users", status_code=201)
async def create_user(
    body: UserWriteRequest,
    store_group: StoreGroup = Depends(get_store_group),
):
    """写入用户资料镜像（id 缺省时生成）"""
    user = _to_user(body.user_id or str(ULID()), body)
    await store_group.user_store.upsert_user(user)
    log.info("user_saved", user_id=user.user_id)
    return JSONResponse(status_code=201, content=to_wire(user))


@router.put("/api/users/{user_id}")
async def update_user(
    user_id: str,
    body: UserWriteRequest,
    store_group: StoreGroup = Depends(get_store_group),
):
    if body.user_id is not None and body.user_id != user_id:
        raise ValidationError("Body id does not match path id", field="id")
    user = _to_user(user_id, body)
    await store_group.user_store.upsert_user(user)
    log.info("user_saved", user_id=user_id)
    return JSONResponse(status_code=200, content=to_wire(user))


def _to_user(user_id: str, body: UserWriteRequest) -> User:
    if not body.username.strip():
        raise ValidationError("Username is required", field="username")
    return User(
        user_id=user_id,
        username=body.username,
        email=body.email,
        full_name=body.full_name,
        department=body.department,
        title=body.title,
        position=body.position,
        profile_image=body.profile_image,
    )
