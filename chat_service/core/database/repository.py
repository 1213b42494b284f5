"""Generic repository over one mapped model.

Sessions are passed in on every call and never committed here; the caller
owns the transaction. Anything beyond lookup, filtered listing and insert
belongs in a subclass or goes straight to the session.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from sqlalchemy import select

from chat_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from chat_service.core.database.filters import StatementFilter


T = TypeVar("T")


class BaseRepository(Generic[T]):
    __slots__ = ("model", "_logger", "_lazy")

    def __init__(self, model: type[T]) -> None:
        self.model = model
        name = f"repository.{model.__name__}"
        self._logger = logging.getLogger(name)
        self._lazy = get_lazy_logger(name)

    async def get(self, session: AsyncSession, id: Any) -> T | None:  # noqa: A002
        """Primary-key lookup through the identity map; None when absent."""
        instance = await session.get(self.model, id)
        self._lazy.debug(lambda: f"get {self.model.__name__}({id}) found={instance is not None}")
        return instance

    async def list(
        self,
        session: AsyncSession,
        *filters: StatementFilter,
        options: Iterable[Any] = (),
    ) -> Sequence[T]:
        """Select rows with ``filters`` applied left to right.

        ``options`` are loader options such as ``selectinload(...)``.
        """
        stmt = select(self.model).options(*options)
        for statement_filter in filters:
            stmt = statement_filter.apply(stmt)
        rows = (await session.execute(stmt)).scalars().all()
        self._lazy.debug(lambda: f"list {self.model.__name__} filters={len(filters)} rows={len(rows)}")
        return rows

    async def create(self, session: AsyncSession, instance: T) -> T:
        # Flush assigns defaults; refresh reads back server-side ones
        session.add(instance)
        await session.flush()
        await session.refresh(instance)
        return instance
