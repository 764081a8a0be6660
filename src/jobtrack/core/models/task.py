"""Task Domain Model

Task 是核心工作项实体。status 中 overdue 为派生状态，completed 为显式状态，
只能经由完成校验进入。version 用于乐观并发控制，每次落盘写入递增。
"""

from datetime import datetime

from pydantic import Field, field_validator

from .base import WireModel, ensure_utc
from .enums import TaskPriority, TaskStatus
from .user import AssignedUser, CreatorInfo


class SubTask(WireModel):
    """子任务"""

    subtask_id: str = Field(alias="id", description="子任务 ID，ULID 格式")
    title: str = Field(description="子任务标题")
    completed: bool = Field(default=False, description="是否完成")
    completed_date: datetime | None = Field(default=None, description="完成时间")

    @field_validator("completed_date")
    @classmethod
    def normalize_dates(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value)


class Attachment(WireModel):
    """任务附件元数据"""

    attachment_id: str = Field(alias="id", description="附件 ID，ULID 格式")
    file_name: str = Field(description="文件名")
    file_url: str = Field(description="文件访问 URL")
    file_type: str = Field(default="", description="文件类型（扩展名或 MIME）")
    upload_date: datetime = Field(description="上传时间")

    @field_validator("upload_date")
    @classmethod
    def normalize_dates(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class Task(WireModel):
    """Task 数据模型

    assigned_users 与 created_by 为分配时刻的快照，不是实时引用。
    """

    task_id: str = Field(alias="id", description="唯一标识，ULID 格式")
    title: str = Field(description="任务标题，非空")
    description: str = Field(default="", description="任务描述")
    status: TaskStatus = Field(default=TaskStatus.TODO, description="当前状态")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, description="优先级")
    category: str = Field(default="Personal", description="分类")
    due_date: datetime = Field(description="截止时间")
    team_id: str | None = Field(default=None, description="所属团队 ID")
    created_by: CreatorInfo = Field(description="创建者快照")
    assigned_users: list[AssignedUser] = Field(
        default_factory=list,
        description="被分配用户快照（无序集合）",
    )
    sub_tasks: list[SubTask] = Field(default_factory=list, description="子任务（有序）")
    dependencies: list[str] = Field(
        default_factory=list,
        description="依赖的任务 ID 集合",
    )
    attachments: list[Attachment] = Field(default_factory=list, description="附件列表")
    is_locked: bool = Field(default=False, description="终态后锁定")
    completed_date: datetime | None = Field(default=None, description="完成时间")
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")
    version: int = Field(default=1, ge=1, description="版本号（乐观并发控制）")

    @field_validator("due_date", "completed_date", "created_at", "updated_at")
    @classmethod
    def normalize_dates(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value)

    @property
    def assigned_user_ids(self) -> list[str]:
        return [u.user_id for u in self.assigned_users]

    @property
    def completed_subtask_count(self) -> int:
        return sum(1 for s in self.sub_tasks if s.completed)

    def involved_user_ids(self) -> set[str]:
        """创建者 + 所有被分配用户（缓存失效与可见性使用）"""
        return {self.created_by.user_id, *self.assigned_user_ids}
