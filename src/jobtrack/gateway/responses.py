"""响应构造辅助

模型统一以 camelCase（by_alias）序列化；读接口附带 Cache-Control，
单任务读取附带基于 version 的 ETag 并支持 If-None-Match。
"""

from collections.abc import Iterable
from typing import Any

from jobtrack.core.config import READ_MAX_AGE_S
from pydantic import BaseModel
from starlette.requests import Request
from starlette.responses import JSONResponse, Response


def to_wire(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)


def to_wire_list(models: Iterable[BaseModel]) -> list[dict[str, Any]]:
    return [to_wire(m) for m in models]


def cache_headers(etag: str | None = None) -> dict[str, str]:
    headers = {"Cache-Control": f"private, max-age={READ_MAX_AGE_S}"}
    if etag is not None:
        headers["ETag"] = etag
    return headers


def version_etag(version: int) -> str:
    return f'"{version}"'


def cached_read_response(request: Request, content: Any, etag: str | None = None) -> Response:
    """读接口响应；If-None-Match 命中时返回 304"""
    headers = cache_headers(etag)
    if etag is not None and request.headers.get("If-None-Match") == etag:
        return Response(status_code=304, headers=headers)
    return JSONResponse(status_code=200, content=content, headers=headers)


def mutation_response(model: BaseModel, status_code: int = 200, version: int | None = None) -> JSONResponse:
    headers = {"ETag": version_etag(version)} if version is not None else None
    return JSONResponse(status_code=status_code, content=to_wire(model), headers=headers)
