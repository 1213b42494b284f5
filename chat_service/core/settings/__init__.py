"""Modular Pydantic Settings v2 configuration.

Each domain (app/db/logging/websocket/chat/auth) has its own settings model
driven by environment variables with a domain prefix. Import settings via the
cached loaders:

    from chat_service.core.settings import get_app_settings
"""

from __future__ import annotations

from .app import AppSettings
from .auth import AuthSettings
from .chat import ChatSettings
from .loader import (
    clear_all_caches,
    get_app_settings,
    get_auth_settings,
    get_chat_settings,
    get_db_settings,
    get_logging_settings,
    get_websocket_settings,
)
from .logs import LoggingSettings
from .postgres import PostgresSettings
from .websocket import WebSocketSettings

__all__ = [
    "AppSettings",
    "AuthSettings",
    "ChatSettings",
    "LoggingSettings",
    "PostgresSettings",
    "WebSocketSettings",
    "clear_all_caches",
    "get_app_settings",
    "get_auth_settings",
    "get_chat_settings",
    "get_db_settings",
    "get_logging_settings",
    "get_websocket_settings",
]
