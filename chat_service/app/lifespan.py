"""Application lifespan management.

Startup order:
1. Logging
2. Database connectivity check (and table creation when enabled)
3. Connection registry and dispatch engine

Shutdown runs in reverse: in-flight chat actions are drained before the
registry closes the sockets, and the engine pool is disposed last.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import TYPE_CHECKING

from chat_service.core.settings import (
    get_app_settings,
    get_db_settings,
    get_logging_settings,
    get_websocket_settings,
)
from chat_service.features.chat.dispatch import start_dispatch_engine, stop_dispatch_engine
from chat_service.infra.database import close_database, init_database
from chat_service.infra.logging import setup_logging
from chat_service.infra.realtime import start_connection_registry, stop_connection_registry

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI

logger = logging.getLogger(__name__)

_realtime_started = False


def get_realtime_started() -> bool:
    """Check if the connection registry and dispatch engine are running."""
    return _realtime_started


async def _startup_core() -> None:
    """Configure logging."""
    app = get_app_settings()
    setup_logging(log_settings=get_logging_settings(), force=True)
    logger.info(
        "Application starting",
        extra={"service": app.service_name, "environment": app.environment},
    )


async def _startup_database() -> None:
    """Verify the database is reachable; failure aborts startup."""
    db = get_db_settings()
    await init_database()
    logger.info(
        "Database connection initialized",
        extra={"configured": db.is_configured, "create_tables": db.create_tables},
    )


async def _startup_realtime() -> None:
    """Start the connection registry and the dispatch engine."""
    global _realtime_started

    ws = get_websocket_settings()
    if not ws.enabled:
        logger.info("Real-time chat disabled")
        return

    registry = await start_connection_registry(ws)
    start_dispatch_engine(registry)
    _realtime_started = True


async def _shutdown_realtime() -> None:
    global _realtime_started

    if not _realtime_started:
        return
    await stop_dispatch_engine()
    await stop_connection_registry()
    _realtime_started = False


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle.

    Args:
        app: FastAPI application instance.

    Yields:
        None during application runtime.
    """
    _ = app

    await _startup_core()
    await _startup_database()
    await _startup_realtime()

    app_settings = get_app_settings()
    logger.info(
        "Application startup complete - listening on %s:%s",
        app_settings.host,
        app_settings.port,
        extra={
            "service": app_settings.service_name,
            "environment": app_settings.environment,
            "realtime_enabled": _realtime_started,
            "api_prefix": app_settings.api_prefix,
        },
    )

    yield

    logger.info("Application shutting down", extra={"service": app_settings.service_name})

    await _shutdown_realtime()
    await close_database()

    logger.info("Application shutdown complete")


__all__ = ["get_realtime_started", "lifespan"]
