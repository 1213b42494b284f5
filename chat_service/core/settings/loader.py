"""Cached settings loaders.

Each loader reads its ``*_`` prefixed environment variables (and ``.env``)
the first time it is called and returns the same frozen instance afterwards.
Tests that change the environment call ``clear_all_caches()``.
"""

from __future__ import annotations

from functools import lru_cache

from .app import AppSettings
from .auth import AuthSettings
from .chat import ChatSettings
from .logs import LoggingSettings
from .postgres import PostgresSettings
from .websocket import WebSocketSettings


@lru_cache(maxsize=1)
def get_app_settings() -> AppSettings:
    """``APP_*``: service identity, API prefix, docs and server binding."""
    return AppSettings()


@lru_cache(maxsize=1)
def get_db_settings() -> PostgresSettings:
    """``DB_*`` / ``DATABASE_URL``: PostgreSQL connection and pool."""
    return PostgresSettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    return LoggingSettings()


@lru_cache(maxsize=1)
def get_websocket_settings() -> WebSocketSettings:
    """``WS_*``: connection limits, heartbeat and action error reporting."""
    return WebSocketSettings()


@lru_cache(maxsize=1)
def get_chat_settings() -> ChatSettings:
    """``CHAT_*``: message, group and history limits."""
    return ChatSettings()


@lru_cache(maxsize=1)
def get_auth_settings() -> AuthSettings:
    return AuthSettings()


_LOADERS = (
    get_app_settings,
    get_db_settings,
    get_logging_settings,
    get_websocket_settings,
    get_chat_settings,
    get_auth_settings,
)


def clear_all_caches() -> None:
    """Forget every cached settings instance."""
    for loader in _LOADERS:
        loader.cache_clear()
