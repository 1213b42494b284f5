"""Tests for FastAPI application lifespan management."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any

from fastapi import FastAPI
import pytest

from chat_service.app import lifespan as lifespan_module


@pytest.fixture
def calls(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    """Replace startup and shutdown collaborators with recorders."""
    recorded: list[str] = []
    registry = SimpleNamespace(name="registry")

    def _setup_logging(**_: Any) -> None:
        recorded.append("logging")

    async def _init_database() -> None:
        recorded.append("init_database")

    async def _close_database() -> None:
        recorded.append("close_database")

    async def _start_registry(_settings: Any) -> SimpleNamespace:
        recorded.append("start_registry")
        return registry

    def _start_engine(reg: Any) -> None:
        assert reg is registry
        recorded.append("start_engine")

    async def _stop_engine() -> None:
        recorded.append("stop_engine")

    async def _stop_registry() -> None:
        recorded.append("stop_registry")

    monkeypatch.setattr(lifespan_module, "setup_logging", _setup_logging)
    monkeypatch.setattr(lifespan_module, "init_database", _init_database)
    monkeypatch.setattr(lifespan_module, "close_database", _close_database)
    monkeypatch.setattr(lifespan_module, "start_connection_registry", _start_registry)
    monkeypatch.setattr(lifespan_module, "start_dispatch_engine", _start_engine)
    monkeypatch.setattr(lifespan_module, "stop_dispatch_engine", _stop_engine)
    monkeypatch.setattr(lifespan_module, "stop_connection_registry", _stop_registry)
    return recorded


@pytest.mark.asyncio
async def test_lifespan_startup_and_shutdown_order(calls: list[str], monkeypatch: pytest.MonkeyPatch) -> None:
    """Actions drain before the registry closes, and the pool goes last."""
    monkeypatch.setattr(lifespan_module, "get_websocket_settings", lambda: SimpleNamespace(enabled=True))

    async with lifespan_module.lifespan(FastAPI()):
        assert lifespan_module.get_realtime_started() is True
        assert calls == ["logging", "init_database", "start_registry", "start_engine"]

    assert calls[4:] == ["stop_engine", "stop_registry", "close_database"]
    assert lifespan_module.get_realtime_started() is False


@pytest.mark.asyncio
async def test_lifespan_without_realtime(calls: list[str], monkeypatch: pytest.MonkeyPatch) -> None:
    """Disabled WebSockets skip the registry and engine entirely."""
    monkeypatch.setattr(lifespan_module, "get_websocket_settings", lambda: SimpleNamespace(enabled=False))

    async with lifespan_module.lifespan(FastAPI()):
        assert lifespan_module.get_realtime_started() is False

    assert calls == ["logging", "init_database", "close_database"]


@pytest.mark.asyncio
async def test_database_failure_aborts_startup(calls: list[str], monkeypatch: pytest.MonkeyPatch) -> None:
    """An unreachable database stops the application from starting."""

    async def _fail() -> None:
        msg = "database unreachable"
        raise ConnectionError(msg)

    monkeypatch.setattr(lifespan_module, "init_database", _fail)

    with pytest.raises(ConnectionError):
        async with lifespan_module.lifespan(FastAPI()):
            pass

    assert "start_registry" not in calls
