"""Pytest configuration and shared fixtures.

Organization:
    - Database Fixtures: file-backed SQLite engine, session factory, session
    - Data Fixtures: persisted users
    - Realtime Fixtures: registry, dispatch engine, fake sockets
    - Application Fixtures: FastAPI app and HTTP client
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tests.utils import make_socket

if TYPE_CHECKING:
    from pathlib import Path
    from unittest.mock import AsyncMock

    from fastapi import FastAPI
    from sqlalchemy.ext.asyncio import AsyncEngine

    from chat_service.features.chat.dispatch import DispatchEngine
    from chat_service.features.users.models import User
    from chat_service.infra.database import SessionFactory
    from chat_service.infra.realtime import ConnectionRegistry

# Ensure tests run without external infrastructure
os.environ.setdefault("DB_ENABLED", "false")
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("WS_HEARTBEAT_INTERVAL", "0")
os.environ.setdefault("APP_DISABLE_DOCS", "true")


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def db_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine]:
    """Create an async engine on a throwaway SQLite file with all tables.

    A file (rather than ``:memory:``) gives every session its own connection,
    so concurrent actions see committed data the way they would in production.
    """
    from chat_service.core.database import Base
    import chat_service.features.chat.models  # noqa: F401
    import chat_service.features.users.models  # noqa: F401

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'chat-test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> SessionFactory:
    """Session factory with the same contract as ``get_async_session``."""
    maker = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    @asynccontextmanager
    async def factory() -> AsyncGenerator[AsyncSession]:
        async with maker() as session:
            yield session

    return factory


@pytest.fixture
async def db_session(session_factory: SessionFactory) -> AsyncGenerator[AsyncSession]:
    """Session for arranging and asserting database state."""
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.rollback()


# ============================================================================
# Data Fixtures
# ============================================================================


@pytest.fixture
async def users(db_session: AsyncSession) -> list[User]:
    """Four persisted users: alice, bob, carol, dave."""
    from chat_service.features.users.models import User

    created = [
        User(
            username=name,
            email=f"{name}@example.com",
            hashed_password=f"hashed-{name}",
            full_name=name.title(),
            profile_image=f"https://cdn.example.com/{name}.png",
            current_town="Lisbon",
        )
        for name in ("alice", "bob", "carol", "dave")
    ]
    db_session.add_all(created)
    await db_session.commit()
    return created


# ============================================================================
# Realtime Fixtures
# ============================================================================


@pytest.fixture
def ws_settings():
    """WebSocket settings with the heartbeat disabled."""
    from chat_service.core.settings import WebSocketSettings

    return WebSocketSettings(heartbeat_interval=0, connection_timeout=0, send_timeout=1.0)


@pytest.fixture
async def registry(ws_settings) -> AsyncGenerator[ConnectionRegistry]:
    """A started connection registry, stopped after the test."""
    from chat_service.infra.realtime import ConnectionRegistry

    reg = ConnectionRegistry(ws_settings)
    await reg.start()
    try:
        yield reg
    finally:
        await reg.stop()


@pytest.fixture
def dispatch_engine(registry: ConnectionRegistry, session_factory: SessionFactory, ws_settings) -> DispatchEngine:
    """Dispatch engine wired to the test registry and database."""
    from chat_service.features.chat.dispatch import DispatchEngine

    return DispatchEngine(registry, session_factory, settings=ws_settings)


@pytest.fixture
def connect(registry: ConnectionRegistry):
    """Bind a fake socket for a user; returns ``(socket, connection_id)``."""

    async def _connect(user: User) -> tuple[AsyncMock, str]:
        websocket = make_socket()
        connection_id = await registry.bind(websocket, str(user.id))
        return websocket, connection_id

    return _connect


# ============================================================================
# Application Fixtures
# ============================================================================


@pytest.fixture
async def app(session_factory: SessionFactory) -> FastAPI:
    """FastAPI application whose request sessions use the test database."""
    from chat_service.app.main import create_app
    from chat_service.core.dependencies import get_db_session

    application = create_app()

    async def _test_session() -> AsyncGenerator[AsyncSession]:
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_db_session] = _test_session
    return application


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """Async HTTP client against the app (lifespan not run)."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
