"""Real-time connection registry."""

from __future__ import annotations

from .registry import (
    ConnectionInfo,
    ConnectionRegistry,
    get_connection_registry,
    start_connection_registry,
    stop_connection_registry,
)

__all__ = [
    "ConnectionInfo",
    "ConnectionRegistry",
    "get_connection_registry",
    "start_connection_registry",
    "stop_connection_registry",
]
