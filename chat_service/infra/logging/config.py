"""Process-wide logging setup.

Every record goes through one QueueHandler on the root logger; a
QueueListener thread owns the console and file handlers so socket and
database coroutines never block on log I/O.
"""

from __future__ import annotations

import atexit
import logging
import logging.config
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path
from queue import Queue
from typing import TYPE_CHECKING, Any

from chat_service.infra.logging.context import ContextInjectingFilter
from chat_service.infra.logging.formatters import JSONFormatter

if TYPE_CHECKING:
    from chat_service.core.settings.logs import LoggingSettings

logger = logging.getLogger(__name__)

TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

_listener: QueueListener | None = None
_configured = False
_atexit_registered = False


def shutdown() -> None:
    """Flush queued records and stop the listener thread. Idempotent."""
    global _listener

    if _listener is not None:
        _listener.stop()
        _listener = None


def setup_logging(
    log_settings: LoggingSettings | None = None,
    *,
    force: bool = False,
    **overrides: Any,
) -> None:
    """Configure logging from ``LOG_*`` settings, once per process.

    Args:
        log_settings: Settings to use; defaults to ``get_logging_settings()``.
        force: Reconfigure even if logging was already set up.
        **overrides: Keyword arguments passed through to ``configure_logging``.
    """
    global _configured

    if _configured and not force:
        return

    if log_settings is None:
        from chat_service.core.settings import get_logging_settings

        log_settings = get_logging_settings()

    configure_logging(**{**log_settings.to_logging_kwargs(), **overrides})
    _configured = True


def configure_logging(
    log_level: str = "INFO",
    *,
    json_logs: bool = True,
    service_name: str = "chat-service",
    logger_levels: dict[str, str] | None = None,
    file_path: str | Path | None = None,
    file_max_bytes: int = 10 * 1024 * 1024,
    file_backup_count: int = 5,
    console_enabled: bool = True,
    include_context: bool = True,
    capture_warnings: bool = True,
) -> None:
    """Replace the root logger's handlers with the queue pipeline."""
    global _listener, _atexit_registered

    shutdown()
    logging.captureWarnings(capture_warnings)

    # dictConfig clears the root handlers, including a previous QueueHandler
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "root": {"level": log_level.upper(), "handlers": []},
            "loggers": {
                name: {"level": level.upper()} for name, level in (logger_levels or {}).items()
            },
        }
    )

    formatter: logging.Formatter = (
        JSONFormatter(static={"service": service_name}) if json_logs else logging.Formatter(TEXT_FORMAT)
    )
    sinks: list[logging.Handler] = []
    if console_enabled:
        sinks.append(logging.StreamHandler())
    if file_path:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        sinks.append(
            RotatingFileHandler(path, maxBytes=file_max_bytes, backupCount=file_backup_count, encoding="utf-8")
        )
    for sink in sinks:
        sink.setFormatter(formatter)

    root = logging.getLogger()
    if not sinks:
        root.addHandler(logging.NullHandler())
        return

    queue: Queue[logging.LogRecord] = Queue()
    queue_handler = QueueHandler(queue)
    # Handler filters run in the emitting task, where the log context lives
    if include_context:
        queue_handler.addFilter(ContextInjectingFilter())
    root.addHandler(queue_handler)

    _listener = QueueListener(queue, *sinks, respect_handler_level=True)
    _listener.start()
    if not _atexit_registered:
        atexit.register(shutdown)
        _atexit_registered = True

    logger.debug(
        "Logging configured",
        extra={"json": json_logs, "file": str(file_path) if file_path else None, "sinks": len(sinks)},
    )
