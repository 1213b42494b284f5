"""Core database package: declarative base, mixins, repository and filters.

Base Classes and Mixins:
    - Base: Declarative base with constraint naming convention
    - UUIDPKMixin, UUIDv7PKMixin: Primary key strategies
    - CreatedAtMixin, TimestampMixin: Timestamp tracking

Repository:
    - BaseRepository[T]: Generic CRUD with explicit session passing

Query Filters:
    - StatementFilter: Base class for composable filters
    - OrderBy, LimitOffset
"""

from __future__ import annotations

from .base import (
    NAMING_CONVENTION,
    Base,
    CreatedAtMixin,
    TimestampMixin,
    UUIDPKMixin,
    UUIDv7PKMixin,
    generate_uuid7,
)
from .exceptions import MessageInvariantError, RepositoryError
from .filters import LimitOffset, OrderBy, StatementFilter
from .repository import BaseRepository

__all__ = [
    "NAMING_CONVENTION",
    "Base",
    "BaseRepository",
    "CreatedAtMixin",
    "LimitOffset",
    "MessageInvariantError",
    "OrderBy",
    "RepositoryError",
    "StatementFilter",
    "TimestampMixin",
    "UUIDPKMixin",
    "UUIDv7PKMixin",
    "generate_uuid7",
]
