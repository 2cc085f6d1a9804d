"""Problem+JSON utilities and global exception handlers.

Defines the RFC7807 media type and handler callables that produce
application/problem+json responses, including the mapping of
synchronization errors to their codes and statuses.
"""

from __future__ import annotations

from typing import Any, Dict
import logging
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi import HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from intake.http.error_mapping import SYNC_ERROR_MAP
from intake.logic.errors import LockConflictError, MissingRequiredFieldsError, SyncError

PROBLEM_MEDIA_TYPE = "application/problem+json"

logger = logging.getLogger(__name__)


def problem_response(status: int, title: str, detail: str = "", **extra: Any) -> JSONResponse:
    body: Dict[str, Any] = {"type": "about:blank", "title": title, "status": status}
    if detail:
        body["detail"] = detail
    body.update(extra)
    return JSONResponse(body, status_code=status, media_type=PROBLEM_MEDIA_TYPE)


async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:  # noqa: D401
    status = int(getattr(exc, "status_code", 500) or 500)
    if isinstance(exc.detail, dict):
        return JSONResponse(exc.detail, status_code=status, media_type=PROBLEM_MEDIA_TYPE, headers=exc.headers)
    return JSONResponse(
        {"type": "about:blank", "title": "Error", "status": status, "detail": str(exc.detail or "")},
        status_code=status,
        media_type=PROBLEM_MEDIA_TYPE,
        headers=exc.headers,
    )


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:  # noqa: D401
    return problem_response(
        422,
        "Invalid Request",
        "Request validation failed",
        errors=jsonable_encoder(exc.errors()),
    )


async def handle_sync_error(request: Request, exc: SyncError) -> JSONResponse:  # noqa: D401
    mapping = next(
        (entry for error_type, entry in SYNC_ERROR_MAP.items() if isinstance(exc, error_type)),
        None,
    )
    if mapping is None:
        return await handle_unexpected_error(request, exc)

    extra: Dict[str, Any] = {"code": mapping["code"]}
    if isinstance(exc, LockConflictError):
        extra["entity"] = exc.entity
    if isinstance(exc, MissingRequiredFieldsError):
        extra["missing_fields"] = list(exc.missing_fields)

    logger.info(
        "sync_error_mapped path=%s code=%s status=%s",
        request.url.path,
        mapping["code"],
        mapping["status"],
    )
    return problem_response(int(mapping["status"]), str(mapping["title"]), str(exc), **extra)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:  # noqa: D401
    logger.error("unexpected_error path=%s", request.url.path, exc_info=exc)
    return problem_response(500, "Internal Server Error")


__all__ = [
    "PROBLEM_MEDIA_TYPE",
    "problem_response",
    "handle_http_exception",
    "handle_request_validation_error",
    "handle_sync_error",
    "handle_unexpected_error",
]
