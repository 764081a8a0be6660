"""模型基类 -- 统一 camelCase 线上格式

内部字段使用 snake_case，序列化到 API 时使用 camelCase 别名。
"""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """camelCase 别名 + 允许按字段名构造"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def ensure_utc(value: datetime | None) -> datetime | None:
    """naive datetime 视为 UTC，aware datetime 转换到 UTC"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
