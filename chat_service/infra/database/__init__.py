"""Database infrastructure: async engine and session factory.

Example:
    from chat_service.infra.database import get_async_session

    async with get_async_session() as session:
        result = await session.execute(...)
"""

from __future__ import annotations

from .session import (
    AsyncSessionLocal,
    SessionFactory,
    close_database,
    engine,
    get_async_session,
    init_database,
)

__all__ = [
    "AsyncSessionLocal",
    "SessionFactory",
    "close_database",
    "engine",
    "get_async_session",
    "init_database",
]
