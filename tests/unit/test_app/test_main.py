"""Tests for FastAPI application factory."""

from __future__ import annotations

from types import SimpleNamespace
from typing import TYPE_CHECKING

from fastapi import FastAPI

from chat_service.app import main as main_module

if TYPE_CHECKING:
    import pytest


def _build_settings() -> SimpleNamespace:
    return SimpleNamespace(
        title="Test Service",
        description="Service description",
        version="0.0.1",
        debug=True,
        get_docs_url=lambda: None,
        get_redoc_url=lambda: None,
        get_openapi_url=lambda: "/schema",
    )


def test_create_app_configures_components(monkeypatch: pytest.MonkeyPatch) -> None:
    """App factory should create FastAPI instance and wire configuration helpers."""
    calls: list[str] = []

    def _record(name: str):
        def _wrapper(app: FastAPI, *args):
            calls.append(name)
            assert isinstance(app, FastAPI)

        return _wrapper

    settings = _build_settings()
    monkeypatch.setattr(main_module, "get_app_settings", lambda: settings)
    monkeypatch.setattr(main_module, "configure_exception_handlers", _record("exceptions"))
    monkeypatch.setattr(main_module, "setup_routers", _record("routers"))

    app = main_module.create_app()

    assert isinstance(app, FastAPI)
    assert app.title == settings.title
    assert app.description == settings.description
    assert app.openapi_url == "/schema"
    assert app.docs_url is None
    assert calls == ["exceptions", "routers"]


def test_default_app_mounts_chat_routes() -> None:
    """The module-level app exposes the REST, socket and metrics routes."""
    app = main_module.app
    paths = app.openapi()["paths"]

    assert "/metrics" in paths
    assert "/api/v1/chat/individual/{receiver_id}" in paths
    assert "/api/v1/chat/groups/{group_id}" in paths
    # WebSocket routes are not part of the OpenAPI document
    assert app.url_path_for("chat_socket") == "/api/v1/chat/ws"
