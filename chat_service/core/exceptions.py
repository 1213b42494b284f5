"""Application exception hierarchy.

Every exception carries the fields of an RFC 7807 problem detail. REST
routes let them propagate to the handlers in ``chat_service.app.exception_handlers``;
the real-time dispatch path catches them at the action boundary and turns
``type``/``detail`` into an ``error`` frame.

Subclasses only fix the defaults:

    class GoneException(AppException):
        status_code = 410
        default_type = "gone"
        default_title = "Gone"
"""

from __future__ import annotations

from typing import Any


class AppException(Exception):
    """Base application exception.

    Attributes:
        status_code: HTTP status code for the error.
        detail: Human-readable error message.
        type: Error type identifier; doubles as the ``code`` of realtime error frames.
        title: Short summary; None lets the handler use the HTTP reason phrase.
        instance: URI reference that identifies the specific occurrence of the problem.
        extra: Additional members merged into the problem detail.
    """

    status_code: int = 500
    default_type: str = "about:blank"
    default_title: str | None = None

    def __init__(
        self,
        detail: str,
        type: str | None = None,
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
        *,
        status_code: int | None = None,
        title: str | None = None,
    ) -> None:
        if status_code is not None:
            self.status_code = status_code
        self.detail = detail
        self.type = type or self.default_type
        self.title = title or self.default_title
        self.instance = instance
        self.extra = extra or {}
        super().__init__(detail)


class NotFoundException(AppException):
    """Raised when a group, user or history query has no result.

    Example:
        raise NotFoundException(
            detail="Chat group not found",
            type="chat-group-not-found",
            extra={"group_id": str(group_id)},
        )
    """

    status_code = 404
    default_type = "not-found"
    default_title = "Not Found"


class ValidationException(AppException):
    """Raised for malformed or incomplete action payloads."""

    status_code = 422
    default_type = "validation-error"
    default_title = "Validation Error"


class UnauthorizedException(AppException):
    """Raised when no verified caller identity is available."""

    status_code = 401
    default_type = "unauthorized"
    default_title = "Unauthorized"


class ForbiddenException(AppException):
    """Raised when a caller acts on behalf of another identity."""

    status_code = 403
    default_type = "forbidden"
    default_title = "Forbidden"


class ServiceUnavailableException(AppException):
    """Raised when a required runtime component (e.g. the connection registry) is down."""

    status_code = 503
    default_type = "service-unavailable"
    default_title = "Service Unavailable"


__all__ = [
    "AppException",
    "ForbiddenException",
    "NotFoundException",
    "ServiceUnavailableException",
    "UnauthorizedException",
    "ValidationException",
]
