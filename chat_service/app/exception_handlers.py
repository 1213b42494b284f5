"""RFC 7807 error responses for the REST API.

``AppException`` subclasses carry their own status, ``type`` and ``extra``
members; request validation failures list the offending fields; anything
else becomes an opaque 500 with the traceback in the log only.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import TYPE_CHECKING, Any

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from chat_service.core.exceptions import AppException
from chat_service.core.schemas.problem_details import (
    FieldError,
    ProblemDetails,
    ValidationProblemDetails,
)

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = logging.getLogger(__name__)

PROBLEM_JSON = "application/problem+json"


def _problem_response(problem: ProblemDetails, extra: dict[str, Any] | None = None) -> JSONResponse:
    body = problem.model_dump(mode="json", exclude_none=True)
    if extra:
        # Standard members win over extension members with the same name
        body = {**extra, **body}
    return JSONResponse(status_code=problem.status, content=body, media_type=PROBLEM_JSON)


def _title(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    log = logger.warning if exc.status_code >= 500 else logger.info
    log(
        "Request rejected",
        extra={
            "path": request.url.path,
            "method": request.method,
            "status_code": exc.status_code,
            "error_type": exc.type,
        },
    )
    problem = ProblemDetails(
        type=exc.type,
        title=exc.title or _title(exc.status_code),
        status=exc.status_code,
        detail=exc.detail,
        instance=exc.instance or request.url.path,
    )
    return _problem_response(problem, exc.extra)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """List every invalid path, query or body field."""
    fields = [
        FieldError(
            field=".".join(str(part) for part in error["loc"]),
            message=error["msg"],
            type=error["type"],
            value=error.get("input"),
        )
        for error in exc.errors()
    ]
    logger.info(
        "Request validation failed",
        extra={"path": request.url.path, "fields": [f.field for f in fields]},
    )
    problem = ValidationProblemDetails(
        type="validation-error",
        title="Validation Error",
        status=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail=f"{len(fields)} invalid field(s)",
        instance=request.url.path,
        errors=fields,
    )
    return _problem_response(problem)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled exception",
        extra={
            "path": request.url.path,
            "method": request.method,
            "exception_type": type(exc).__name__,
        },
        exc_info=exc,
    )
    problem = ProblemDetails(
        type="internal-error",
        title="Internal Server Error",
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="An unexpected error occurred while processing your request",
        instance=request.url.path,
    )
    return _problem_response(problem)


def configure_exception_handlers(app: FastAPI) -> None:
    """Register the problem-detail handlers on ``app``."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
