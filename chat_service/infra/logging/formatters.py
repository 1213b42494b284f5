"""One JSON object per log line.

    {"timestamp": "2025-01-01T00:00:00.123Z", "level": "INFO",
     "logger": "chat_service.features.chat.dispatch",
     "message": "Group message delivered", "connection_id": "..."}
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

from opentelemetry import trace

# Attributes every LogRecord has; whatever else is on a record came from
# extra={...} or the context filter and is emitted as-is.
_STANDARD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def _utc_iso(created: float) -> str:
    stamp = datetime.fromtimestamp(created, tz=UTC).isoformat(timespec="milliseconds")
    return stamp.removesuffix("+00:00") + "Z"


class JSONFormatter(logging.Formatter):
    """JSON Lines formatter.

    ``static`` fields (the service name) are added to every record. When an
    OpenTelemetry span is active its ids are attached as ``trace_id`` and
    ``span_id``.
    """

    def __init__(self, static: dict[str, Any] | None = None) -> None:
        super().__init__()
        self.static = dict(static or {})

    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "timestamp": _utc_iso(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **self.static,
        }

        span_context = trace.get_current_span().get_span_context()
        if span_context.is_valid:
            data["trace_id"] = format(span_context.trace_id, "032x")
            data["span_id"] = format(span_context.span_id, "016x")

        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            data["stack_trace"] = self.formatStack(record.stack_info)

        for key, value in vars(record).items():
            if key not in _STANDARD_ATTRS:
                data.setdefault(key, value)

        # json.dumps escapes embedded newlines, so tracebacks stay on one line
        return json.dumps(data, ensure_ascii=False, default=str)
