"""Database repository exceptions.

Repository code raises these instead of leaking raw SQLAlchemy errors
for conditions the caller is expected to handle.
"""

from __future__ import annotations

from typing import Any


class RepositoryError(Exception):
    """Base exception for repository operations."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class MessageInvariantError(RepositoryError):
    """A message record is addressed to neither or both of receiver and group.

    Raised before the insert so the row never reaches the database; the
    table's CHECK constraint is the second line.
    """
