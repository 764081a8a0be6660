"""绩效与统计模型

PerformanceScore 每次从用户完整任务集重新推导（非增量），因此重复计算幂等。
TaskStatsAggregate 是查询边界上的强类型聚合结果，字段显式映射。
"""

from datetime import datetime

from pydantic import Field

from .base import WireModel


class PerformanceScore(WireModel):
    """用户绩效分"""

    user_id: str = Field(description="用户 ID")
    score: float = Field(default=100.0, ge=0.0, le=100.0, description="绩效分 0-100")
    completed_tasks_count: int = Field(default=0, ge=0, description="已完成任务数")
    overdue_tasks_count: int = Field(default=0, ge=0, description="逾期任务数")
    last_updated: datetime = Field(description="最近计算时间")


class TaskStatsAggregate(WireModel):
    """任务统计聚合"""

    total: int = 0
    todo: int = 0
    in_progress: int = 0
    completed: int = 0
    overdue: int = 0
    completion_rate: float = Field(default=0.0, description="完成率（百分比）")
    average_completion_days: float = Field(
        default=0.0,
        description="已完成任务从创建到完成的平均天数",
    )
