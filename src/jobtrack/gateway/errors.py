"""异常 -> HTTP 响应映射

core 抛出领域异常，网关在此统一翻译为错误信封：
{"error": {"code": ..., "message": ..., "details": ...}}
"""

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from jobtrack.core.exceptions import (
    AuthenticationError,
    CompletionBlockedError,
    ConflictError,
    ForbiddenError,
    JobTrackError,
    NotFoundError,
    PersistenceError,
    TaskLockedError,
    ValidationError,
)
from starlette.responses import JSONResponse

log = structlog.get_logger()

# 异常类型 -> HTTP 状态码（按 MRO 匹配，未列出的 JobTrackError 视为 500）
STATUS_CODES: dict[type[JobTrackError], int] = {
    ValidationError: 422,
    AuthenticationError: 401,
    ForbiddenError: 403,
    NotFoundError: 404,
    CompletionBlockedError: 409,
    ConflictError: 409,
    TaskLockedError: 423,
    PersistenceError: 500,
}


def status_code_for(exc: JobTrackError) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]
    return 500


def error_details(exc: JobTrackError) -> dict[str, Any] | None:
    """提取字段级细节"""
    if isinstance(exc, ValidationError):
        return {"field": exc.field, **exc.details}
    if isinstance(exc, CompletionBlockedError):
        return {"reason": exc.reason.value}
    if isinstance(exc, ConflictError):
        return {
            "expectedVersion": exc.expected_version,
            "currentVersion": exc.actual_version,
        }
    if isinstance(exc, NotFoundError):
        return {"entity": exc.entity, "id": exc.entity_id}
    if isinstance(exc, TaskLockedError):
        return {"taskId": exc.task_id}
    return None


def error_response(status_code: int, code: str, message: str, details: Any = None) -> JSONResponse:
    error: dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    return JSONResponse(status_code=status_code, content={"error": jsonable_encoder(error)})


async def handle_jobtrack_error(request: Request, exc: JobTrackError) -> JSONResponse:
    status_code = status_code_for(exc)
    if status_code >= 500:
        log.error("request_failed", error_code=exc.code, error=exc.message)
    else:
        log.info("request_rejected", error_code=exc.code, status_code=status_code)
    return error_response(status_code, exc.code, exc.message, error_details(exc))


async def handle_request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return error_response(
        422,
        ValidationError.code,
        "Request validation failed",
        {"errors": exc.errors()},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(JobTrackError, handle_jobtrack_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
