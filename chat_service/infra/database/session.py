"""Database session management with psycopg3 async driver."""

from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import TYPE_CHECKING

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from chat_service.core.database import Base
from chat_service.core.settings import get_app_settings, get_db_settings

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = logging.getLogger(__name__)

db_settings = get_db_settings()
app_settings = get_app_settings()

engine_kwargs = db_settings.sqlalchemy_engine_kwargs()
engine_kwargs["echo"] = engine_kwargs["echo"] or app_settings.debug

# Async engine: postgresql+psycopg when configured, aiosqlite otherwise
engine = create_async_engine(db_settings.get_sqlalchemy_url(), **engine_kwargs)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
    autocommit=False,
)

# Anything that opens a session the caller closes, e.g. get_async_session
SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


@asynccontextmanager
async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """Get async database session.

    Yields:
        Database session that is automatically closed.

    Example:
        async with get_async_session() as session:
            result = await session.execute(select(ChatGroup))
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_database() -> None:
    """Check connectivity and optionally create missing tables.

    Raises:
        Exception: Whatever the driver raised when the database is unreachable.
    """
    db_url = db_settings.get_sqlalchemy_url()
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            if db_settings.create_tables or not db_settings.is_configured:
                # Import models so every table is registered on Base.metadata
                import chat_service.features.chat.models  # noqa: F401
                import chat_service.features.users.models  # noqa: F401

                await conn.run_sync(Base.metadata.create_all)
        logger.info(
            "Database connection established successfully",
            extra={"url": engine.url.render_as_string(hide_password=True)},
        )
    except Exception as e:
        logger.error(
            "Failed to connect to database",
            extra={"url": db_url.split("@")[-1], "error": str(e)},
        )
        raise


async def close_database() -> None:
    """Dispose the engine's connection pool.

    Called during application shutdown.
    """
    logger.info("Closing database connection")
    await engine.dispose()


__all__ = [
    "AsyncSessionLocal",
    "SessionFactory",
    "close_database",
    "engine",
    "get_async_session",
    "init_database",
]
