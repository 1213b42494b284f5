"""Test helpers shared across the suite."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock


def make_socket() -> AsyncMock:
    """Fake WebSocket recording every frame sent to it."""
    return AsyncMock()


def sent_frames(websocket: AsyncMock, event: str | None = None) -> list[dict[str, Any]]:
    """Frames sent to ``websocket``, optionally only those of one event."""
    frames = [call.args[0] for call in websocket.send_json.call_args_list]
    if event is None:
        return frames
    return [frame for frame in frames if frame["event"] == event]
