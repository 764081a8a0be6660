"""Store Protocol 接口定义

定义 TaskStore、UserStore、PerformanceStore、AttachmentStorage 的抽象接口，
使用 Python Protocol 实现结构化子类型（duck typing）。
TaskStore 需保证单次调用内读己之写与单文档原子更新，不要求跨文档事务。
"""

from collections.abc import Iterable
from typing import Protocol

from ..models.performance import PerformanceScore
from ..models.task import Attachment, Task
from ..models.user import User


class TaskStore(Protocol):
    """Task 存储接口"""

    async def create_task(self, task: Task) -> Task:
        """创建任务记录"""
        ...

    async def get_task(self, task_id: str) -> Task | None:
        """根据 task_id 查询任务"""
        ...

    async def update_task(self, task: Task, expected_version: int) -> Task:
        """整体替换（比较并交换）

        存储版本与 expected_version 不一致时抛出 ConflictError，
        成功时返回 version = expected_version + 1 的任务。
        """
        ...

    async def delete_task(self, task_id: str) -> bool:
        """删除任务，返回是否存在并已删除"""
        ...

    async def query_by_user_id(self, user_id: str, assigned_only: bool = False) -> list[Task]:
        """查询用户可见任务（创建或被分配），assigned_only 仅返回被分配的"""
        ...

    async def query_by_team_id(self, team_id: str) -> list[Task]:
        """查询团队任务"""
        ...

    async def query_by_ids(self, task_ids: Iterable[str]) -> list[Task]:
        """按 ID 集合批量查询，不存在的 ID 被忽略"""
        ...


class UserStore(Protocol):
    """用户资料镜像存储接口"""

    async def upsert_user(self, user: User) -> None:
        ...

    async def get_user(self, user_id: str) -> User | None:
        ...

    async def get_users(self, user_ids: Iterable[str]) -> list[User]:
        """按 ID 集合批量查询，不存在的 ID 被忽略"""
        ...

    async def list_user_ids(self) -> list[str]:
        """全部镜像用户 ID"""
        ...


class PerformanceStore(Protocol):
    """绩效分存储接口"""

    async def save_score(self, score: PerformanceScore) -> None:
        """写入（覆盖）用户绩效分"""
        ...

    async def get_score(self, user_id: str) -> PerformanceScore | None:
        ...


class AttachmentStorage(Protocol):
    """附件文件存储（外部协作方）"""

    async def save(self, task_id: str, attachment_id: str, file_name: str, content: bytes) -> str:
        """保存文件内容，返回访问 URL"""
        ...

    async def remove_for_task(self, task_id: str, attachments: list[Attachment]) -> int:
        """删除任务的附件文件，返回删除数量"""
        ...
