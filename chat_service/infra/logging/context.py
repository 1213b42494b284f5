"""Context management for structured logging.

A contextvars-backed dict is injected into every LogRecord by
ContextInjectingFilter, so a WebSocket handler can call
``set_log_context(connection_id=..., user_id=...)`` once and every log line
emitted by the tasks it spawns carries those fields.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from typing import Any

_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})


def set_log_context(**kwargs: Any) -> None:
    """Add fields to the logging context of the current task.

    Tasks created afterwards with ``asyncio.create_task`` inherit a copy.
    """
    current = _log_context.get().copy()
    current.update(kwargs)
    _log_context.set(current)


def get_log_context() -> dict[str, Any]:
    """Return a copy of the current logging context."""
    return _log_context.get().copy()


def clear_log_context() -> None:
    """Clear all logging context for the current task."""
    _log_context.set({})


class ContextInjectingFilter(logging.Filter):
    """Logging filter that copies the current log context onto each record.

    Attached to the root QueueHandler by ``configure_logging`` so it runs in
    the task that emitted the record.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_context.get().items():
            # Explicit extra={...} wins over ambient context
            if not hasattr(record, key):
                setattr(record, key, value)
        return True
