"""RFC 7807 Problem Details schemas for error responses."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class FieldError(BaseModel):
    """One failed field in a validation problem."""

    field: str = Field(description="Dotted path of the offending field")
    message: str
    type: str
    value: Any | None = None


class ProblemDetails(BaseModel):
    """RFC 7807 Problem Details for HTTP APIs.

    See: https://datatracker.ietf.org/doc/html/rfc7807
    """

    type: str = Field(
        default="about:blank",
        min_length=1,
        max_length=200,
        description="URI reference identifying the problem type",
    )
    title: str = Field(
        min_length=1, max_length=200, description="Short, human-readable summary of the problem"
    )
    status: int = Field(ge=100, le=599, description="HTTP status code")
    detail: str | None = Field(
        default=None,
        max_length=2000,
        description="Human-readable explanation specific to this occurrence",
    )
    instance: str | None = Field(
        default=None,
        max_length=500,
        description="URI reference identifying the specific occurrence",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "type": "chat-group-not-found",
                "title": "Not Found",
                "status": 404,
                "detail": "Chat group not found",
                "instance": "/api/v1/chat/groups/0190f1d2-0000-7000-8000-000000000000",
            }
        },
        str_strip_whitespace=True,
    )


class ValidationProblemDetails(ProblemDetails):
    """Problem detail carrying per-field validation failures."""

    errors: list[FieldError] = Field(default_factory=list)


__all__ = ["FieldError", "ProblemDetails", "ValidationProblemDetails"]
