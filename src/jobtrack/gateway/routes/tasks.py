"""任务 CRUD 路由

POST   /api/tasks: 创建任务（201）
GET    /api/tasks/{task_id}: 任务详情（缓存读，ETag = version）
PUT    /api/tasks/{task_id}: 整体更新（仅创建者，body version 或 If-Match 为基线版本）
DELETE /api/tasks/{task_id}: 删除任务（仅创建者），级联清理附件
"""

from fastapi import APIRouter, Depends, Request
from starlette.responses import Response

from ..deps import get_current_user_id, get_if_match_version, get_task_service
from ..responses import cached_read_response, mutation_response, to_wire, version_etag
from ..schemas import TaskWriteRequest
from ..services.task_service import TaskService

router = APIRouter()


@router.post("/api/tasks", status_code=201)
async def create_task(
    body: TaskWriteRequest,
    actor_id: str = Depends(get_current_user_id),
    service: TaskService = Depends(get_task_service),
):
    """创建任务，返回生成的 id 与解析后的 assignedUsers"""
    result = await service.create_task(actor_id, body)
    return mutation_response(result.task, status_code=201, version=result.task.version)


@router.get("/api/tasks/{task_id}")
async def get_task(
    task_id: str,
    request: Request,
    service: TaskService = Depends(get_task_service),
):
    """查询任务详情（惰性应用 overdue 规则）"""
    task = await service.get_task(task_id)
    return cached_read_response(request, to_wire(task), etag=version_etag(task.version))


@router.put("/api/tasks/{task_id}")
async def update_task(
    task_id: str,
    body: TaskWriteRequest,
    actor_id: str = Depends(get_current_user_id),
    if_match: int | None = Depends(get_if_match_version),
    service: TaskService = Depends(get_task_service),
):
    """整体替换任务，状态按提交的 subTasks 重新推导"""
    result = await service.update_task(actor_id, task_id, body, if_match=if_match)
    return mutation_response(result.task, version=result.task.version)


@router.delete("/api/tasks/{task_id}", status_code=204)
async def delete_task(
    task_id: str,
    actor_id: str = Depends(get_current_user_id),
    service: TaskService = Depends(get_task_service),
):
    """删除任务（仅创建者）"""
    await service.delete_task(actor_id, task_id)
    return Response(status_code=204)
