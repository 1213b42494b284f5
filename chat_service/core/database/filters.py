"""Composable query filters for repository statements.

Each filter takes a ``Select`` and returns a narrowed ``Select``, so several
can be applied in sequence:

    stmt = select(ChatMessage)
    for f in (MessagesInGroup(group_id), OrderBy(ChatMessage.timestamp, "desc")):
        stmt = f.apply(stmt)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    from sqlalchemy import Select
    from sqlalchemy.orm import InstrumentedAttribute


class StatementFilter(ABC):
    """Base class for statement filters."""

    @abstractmethod
    def apply(self, statement: Select[Any]) -> Select[Any]:
        """Return ``statement`` narrowed by this filter."""


@dataclass(frozen=True, slots=True)
class OrderBy(StatementFilter):
    """Sort by one column."""

    field: InstrumentedAttribute[Any]
    sort_order: Literal["asc", "desc"] = "asc"

    def apply(self, statement: Select[Any]) -> Select[Any]:
        if self.sort_order == "desc":
            return statement.order_by(self.field.desc())
        return statement.order_by(self.field.asc())


@dataclass(frozen=True, slots=True)
class LimitOffset(StatementFilter):
    """Pagination window."""

    limit: int
    offset: int = 0

    def apply(self, statement: Select[Any]) -> Select[Any]:
        return statement.limit(self.limit).offset(self.offset)
