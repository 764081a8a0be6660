"""User 与用户快照模型

User 由外部用户服务维护，本地仅保存镜像用于解析分配对象。
AssignedUser / CreatorInfo 是分配时刻拷贝的只读快照（read-model projection），
只在重新分配时刷新，不随 User 资料变更自动同步。
"""

from pydantic import Field

from .base import WireModel


class User(WireModel):
    """用户资料镜像"""

    user_id: str = Field(alias="id", description="用户 ID")
    username: str = Field(description="用户名")
    email: str = Field(default="", description="邮箱")
    full_name: str = Field(default="", description="全名")
    department: str = Field(default="", description="部门")
    title: str = Field(default="", description="头衔")
    position: str = Field(default="", description="职位")
    profile_image: str | None = Field(default=None, description="头像 URL")


class AssignedUser(WireModel):
    """被分配用户快照"""

    user_id: str = Field(alias="id", description="用户 ID")
    username: str = Field(default="", description="用户名")
    email: str = Field(default="", description="邮箱")
    full_name: str = Field(default="", description="全名")
    department: str = Field(default="", description="部门")
    title: str = Field(default="", description="头衔")
    position: str = Field(default="", description="职位")
    profile_image: str | None = Field(default=None, description="头像 URL")

    @classmethod
    def from_user(cls, user: User) -> "AssignedUser":
        """从 User 拷贝快照字段"""
        return cls(
            user_id=user.user_id,
            username=user.username,
            email=user.email,
            full_name=user.full_name,
            department=user.department,
            title=user.title,
            position=user.position,
            profile_image=user.profile_image,
        )


class CreatorInfo(WireModel):
    """创建者快照"""

    user_id: str = Field(alias="id", description="用户 ID")
    username: str = Field(default="", description="用户名")
    full_name: str = Field(default="", description="全名")
    profile_image: str | None = Field(default=None, description="头像 URL")

    @classmethod
    def from_user(cls, user: User) -> "CreatorInfo":
        return cls(
            user_id=user.user_id,
            username=user.username,
            full_name=user.full_name,
            profile_image=user.profile_image,
        )
