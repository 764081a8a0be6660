"""请求体模型 -- camelCase 线上格式

路由与 TaskService 共用；响应直接使用 core 模型的 by_alias 序列化。
"""

from datetime import datetime

from jobtrack.core.models import TaskPriority, TaskStatus, WireModel, ensure_utc
from pydantic import Field, field_validator


class SubTaskInput(WireModel):
    """提交的子任务；id 缺省时由服务端生成"""

    subtask_id: str | None = Field(default=None, alias="id")
    title: str
    completed: bool = False
    completed_date: datetime | None = None


class UserRef(WireModel):
    """按 ID 引用用户（兼容提交完整 assignedUsers 对象的客户端，其余字段忽略）"""

    user_id: str = Field(alias="id")


class TaskWriteRequest(WireModel):
    """创建 / 整体更新任务请求体"""

    title: str = Field(description="任务标题，非空")
    description: str = ""
    status: TaskStatus | None = Field(
        default=None,
        description="仅允许 todo / in-progress；缺省时由子任务推导",
    )
    priority: TaskPriority = TaskPriority.MEDIUM
    category: str = "Personal"
    due_date: datetime
    team_id: str | None = None
    assigned_user_ids: list[str] = Field(default_factory=list)
    assigned_users: list[UserRef] = Field(default_factory=list)
    sub_tasks: list[SubTaskInput] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)
    version: int | None = Field(
        default=None,
        description="整体更新的基线版本（也可通过 If-Match 头提供）",
    )

    @field_validator("due_date")
    @classmethod
    def normalize_dates(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    def requested_assignee_ids(self) -> list[str]:
        """assignedUserIds 与 assignedUsers[].id 合并去重"""
        ids = [*self.assigned_user_ids, *(u.user_id for u in self.assigned_users)]
        return list(dict.fromkeys(ids))


class AttachmentCreateRequest(WireModel):
    """附件上传请求体：content 为 base64 内容，或直接提供外部 fileUrl"""

    file_name: str
    file_type: str = ""
    file_url: str | None = None
    content: str | None = Field(default=None, description="base64 编码的文件内容")


class UserWriteRequest(WireModel):
    """用户资料镜像写入请求体"""

    user_id: str | None = Field(default=None, alias="id")
    username: str
    email: str = ""
    full_name: str = ""
    department: str = ""
    title: str = ""
    position: str = ""
    profile_image: str | None = None
