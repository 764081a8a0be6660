"""团队路由

GET /api/teams/{team_id}/tasks: 团队任务列表
GET /api/teams/{team_id}/stats: 团队任务统计（TaskStatsAggregate）
"""

from fastapi import APIRouter, Depends, Request

from ..deps import get_task_service
from ..responses import cached_read_response, to_wire, to_wire_list
from ..services.task_service import TaskService

router = APIRouter()


@router.get("/api/teams/{team_id}/tasks")
async def list_team_tasks(
    team_id: str,
    request: Request,
    service: TaskService = Depends(get_task_service),
):
    tasks = await service.list_team_tasks(team_id)
    return cached_read_response(request, to_wire_list(tasks))


@router.get("/api/teams/{team_id}/stats")
async def team_stats(
    team_id: str,
    request: Request,
    service: TaskService = Depends(get_task_service),
):
    stats = await service.team_stats(team_id)
    return cached_read_response(request, to_wire(stats))
