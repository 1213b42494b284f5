"""Chat WebSocket gateway.

Endpoint:
- GET /chat/ws?userId=<uuid>: bidirectional chat socket

Message protocol:
    Client → Server:
    - {"event": "individual", "data": {"senderId", "receiverId", "message"}}
    - {"event": "group", "data": {"senderId", "groupId", "message"}}
    - {"event": "createGroup", "data": {"groupName", "memberIds"}}
    - {"event": "addUsersToGroup", "data": {"groupId", "memberIds"}}
    - {"event": "ping"} / {"event": "pong"}

    Server → Client:
    - {"event": "connected", "data": {"connectionId", "userId", "channels"}}
    - {"event": "individual" | "group", "data": <message>}
    - {"event": "groupCreated", "data": <group>}
    - {"event": "usersAddedToGroup", "data": {"groupId", "userIds", "members"}}
    - {"event": "ping" | "pong", "data": {}}
    - {"event": "error", "data": {"action", "code", "message"}}
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError

from chat_service.core.dependencies.auth import resolve_websocket_identity
from chat_service.core.dependencies.realtime import get_dispatch_engine_optional, get_registry_optional
from chat_service.core.settings import get_websocket_settings
from chat_service.features.chat.schemas import (
    ActionErrorOut,
    ClientEvent,
    ClientFrame,
    ConnectedOut,
    ServerEvent,
    server_frame,
)
from chat_service.infra.logging import clear_log_context, set_log_context
from chat_service.infra.metrics.prometheus import websocket_messages_received_total

if TYPE_CHECKING:
    from uuid import UUID

    from chat_service.features.chat.dispatch import DispatchEngine
    from chat_service.infra.realtime import ConnectionRegistry

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/chat", tags=["chat"])

_KNOWN_EVENTS = frozenset(e.value for e in ClientEvent)


@router.websocket("/ws")
async def chat_socket(websocket: WebSocket) -> None:
    """Bind the socket to the caller and pump inbound frames to the dispatcher."""
    ws_settings = get_websocket_settings()
    if not ws_settings.enabled:
        await websocket.close(code=status.WS_1013_TRY_AGAIN_LATER, reason="WebSocket disabled")
        return

    registry = get_registry_optional()
    engine = get_dispatch_engine_optional()
    if registry is None or engine is None:
        await websocket.close(code=status.WS_1013_TRY_AGAIN_LATER, reason="Server not ready")
        return

    user_id = resolve_websocket_identity(websocket)
    if user_id is None:
        logger.info("WebSocket rejected: missing or invalid identity")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Invalid user identity")
        return

    connection_id: str | None = None
    try:
        connection_id = await registry.bind(websocket, str(user_id))
        set_log_context(connection_id=connection_id, user_id=str(user_id))

        groups = await engine.membership.restore_subscriptions(connection_id, user_id)
        connected = ConnectedOut(
            connection_id=connection_id,
            user_id=user_id,
            channels=[str(user_id), *groups],
        )
        await registry.send_to_connection(
            connection_id, server_frame(ServerEvent.CONNECTED, connected.to_wire())
        )
        logger.info("Chat client connected", extra={"groups": len(groups)})

        await _receive_loop(websocket, connection_id, user_id, registry, engine)

    except ConnectionRefusedError as e:
        logger.warning("WebSocket connection refused", extra={"reason": str(e)})
        await websocket.close(code=status.WS_1013_TRY_AGAIN_LATER, reason=str(e))

    except WebSocketDisconnect:
        logger.debug("Chat client disconnected")

    except Exception as e:
        logger.exception("WebSocket error", extra={"error": str(e)})

    finally:
        if connection_id is not None:
            await registry.unbind(connection_id)
        clear_log_context()


async def _receive_loop(
    websocket: WebSocket,
    connection_id: str,
    user_id: UUID,
    registry: ConnectionRegistry,
    engine: DispatchEngine,
) -> None:
    max_size = get_websocket_settings().max_message_size

    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return

        raw = message.get("text")
        if raw is None:
            await _send_error(registry, connection_id, None, "invalid-frame", "Binary frames are not supported")
            continue
        if len(raw.encode()) > max_size:
            await _send_error(registry, connection_id, None, "message-too-large", f"Frame exceeds {max_size} bytes")
            continue

        try:
            frame = ClientFrame.model_validate(json.loads(raw))
        except json.JSONDecodeError:
            await _send_error(registry, connection_id, None, "invalid-json", "Invalid JSON message")
            continue
        except ValidationError:
            await _send_error(
                registry, connection_id, None, "invalid-frame", "Frames must be {\"event\": ..., \"data\": {...}}"
            )
            continue

        label = frame.event if frame.event in _KNOWN_EVENTS else "unknown"
        websocket_messages_received_total.labels(message_type=label).inc()

        if frame.event == ClientEvent.PING.value:
            await registry.touch(connection_id)
            await registry.send_to_connection(connection_id, server_frame(ServerEvent.PONG))
        elif frame.event == ClientEvent.PONG.value:
            await registry.touch(connection_id)
        elif frame.event in engine.actions:
            await registry.touch(connection_id)
            engine.dispatch(connection_id, user_id, frame.event, frame.data)
        else:
            await _send_error(
                registry, connection_id, frame.event, "unknown-event", f"Unknown event: {frame.event}"
            )


async def _send_error(
    registry: ConnectionRegistry,
    connection_id: str,
    action: str | None,
    code: str,
    message: str,
) -> None:
    error = ActionErrorOut(action=action, code=code, message=message)
    await registry.send_to_connection(connection_id, server_frame(ServerEvent.ERROR, error.to_wire()))
