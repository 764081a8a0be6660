"""任务生命周期路由

PUT      /api/tasks/{task_id}/status: 通用状态变更，body 为 JSON 字符串（todo / in-progress）
PUT|POST /api/tasks/{task_id}/complete: 完成任务（无 body）
POST     /api/tasks/{task_id}/subtasks/{subtask_id}/toggle: 翻转子任务完成标记
POST     /api/tasks/{task_id}/attachments: 追加附件
"""

from fastapi import APIRouter, Body, Depends
from jobtrack.core.models import TaskStatus

from ..deps import get_current_user_id, get_task_service
from ..responses import mutation_response
from ..schemas import AttachmentCreateRequest
from ..services.task_service import TaskService

router = APIRouter()


@router.put("/api/tasks/{task_id}/status")
async def change_status(
    task_id: str,
    status: TaskStatus = Body(description='目标状态，如 "in-progress"'),
    actor_id: str = Depends(get_current_user_id),
    service: TaskService = Depends(get_task_service),
):
    """completed 须走完成接口，overdue 仅由截止时间派生"""
    result = await service.change_status(actor_id, task_id, status)
    return mutation_response(result.task, version=result.task.version)


@router.api_route("/api/tasks/{task_id}/complete", methods=["PUT", "POST"])
async def complete_task(
    task_id: str,
    actor_id: str = Depends(get_current_user_id),
    service: TaskService = Depends(get_task_service),
):
    """子任务与依赖全部完成后进入 completed 并锁定"""
    result = await service.complete_task(actor_id, task_id)
    return mutation_response(result.task, version=result.task.version)


@router.post("/api/tasks/{task_id}/subtasks/{subtask_id}/toggle")
async def toggle_subtask(
    task_id: str,
    subtask_id: str,
    actor_id: str = Depends(get_current_user_id),
    service: TaskService = Depends(get_task_service),
):
    result = await service.toggle_subtask(actor_id, task_id, subtask_id)
    return mutation_response(result.task, version=result.task.version)


@router.post("/api/tasks/{task_id}/attachments", status_code=201)
async def add_attachment(
    task_id: str,
    body: AttachmentCreateRequest,
    actor_id: str = Depends(get_current_user_id),
    service: TaskService = Depends(get_task_service),
):
    result = await service.add_attachment(actor_id, task_id, body)
    return mutation_response(result.task, status_code=201, version=result.task.version)
