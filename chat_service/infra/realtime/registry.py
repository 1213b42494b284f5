"""Connection registry: live WebSocket bindings and channel fan-out.

The registry owns every live connection in this process and the channels
each one is subscribed to. A channel is either a user's private channel
(the user id string) or a group channel (the group id string).

- A connection is bound once, to one user, and is subscribed to that
  user's private channel at bind time.
- ``publish`` writes to every subscriber concurrently; each write is
  bounded by ``WS_SEND_TIMEOUT`` and a failed write unbinds only the
  connection that failed.
- All map mutations happen under one asyncio lock. Socket writes happen
  outside it, against a snapshot of the subscriber set.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
import contextlib
from dataclasses import dataclass, field
import logging
import time
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from chat_service.core.settings import get_websocket_settings
from chat_service.infra.metrics.prometheus import (
    websocket_broadcast_recipients,
    websocket_connection_duration_seconds,
    websocket_connections_total,
    websocket_messages_sent_total,
    websocket_send_failures_total,
)

if TYPE_CHECKING:
    from fastapi import WebSocket

    from chat_service.core.settings import WebSocketSettings

logger = logging.getLogger(__name__)


@dataclass
class ConnectionInfo:
    """A bound connection and the channels it receives."""

    connection_id: str
    websocket: WebSocket
    user_id: str
    channels: set[str] = field(default_factory=set)
    connected_at: float = field(default_factory=time.time)
    last_ping: float = field(default_factory=time.time)


class ConnectionRegistry:
    """Maps user identities to live connections and channels to subscribers.

    Example:
        registry = ConnectionRegistry()
        await registry.start()

        connection_id = await registry.bind(websocket, user_id)
        try:
            async for frame in websocket.iter_text():
                ...
        finally:
            await registry.unbind(connection_id)

        await registry.publish(user_id, {"event": "individual", "data": {...}})
    """

    def __init__(self, settings: WebSocketSettings | None = None) -> None:
        self._settings = settings or get_websocket_settings()

        # connection_id -> ConnectionInfo
        self._connections: dict[str, ConnectionInfo] = {}
        # channel -> connection_ids
        self._channel_connections: dict[str, set[str]] = defaultdict(set)
        # user_id -> connection_ids
        self._user_connections: dict[str, set[str]] = defaultdict(set)
        # id(websocket) -> connection_id, makes bind idempotent per socket
        self._socket_bindings: dict[int, str] = {}

        self._lock = asyncio.Lock()
        self._running = False
        self._heartbeat_task: asyncio.Task | None = None

    # ──────────────────────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────────────────────

    async def start(self) -> None:
        """Start the heartbeat loop."""
        if self._running:
            return
        self._running = True

        if self._settings.heartbeat_interval > 0:
            self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())
        logger.info(
            "Connection registry started",
            extra={"heartbeat_interval": self._settings.heartbeat_interval},
        )

    async def stop(self) -> None:
        """Stop the heartbeat loop and close every connection."""
        self._running = False

        if self._heartbeat_task:
            self._heartbeat_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._heartbeat_task
            self._heartbeat_task = None

        async with self._lock:
            connections = list(self._connections.values())
            self._connections.clear()
            self._channel_connections.clear()
            self._user_connections.clear()
            self._socket_bindings.clear()

        await asyncio.gather(
            *(self._close(c.websocket, code=1001, reason="Server shutdown") for c in connections)
        )

        websocket_connections_total.set(0)
        logger.info(
            "Connection registry stopped",
            extra={"connections_closed": len(connections)},
        )

    # ──────────────────────────────────────────────────────────────
    # Binding
    # ──────────────────────────────────────────────────────────────

    async def bind(self, websocket: WebSocket, user_id: str) -> str:
        """Accept ``websocket`` and bind it to ``user_id``.

        The connection is subscribed to the user's private channel. Binding
        a socket that is already bound returns its existing connection id.

        Returns:
            Connection id

        Raises:
            ConnectionRefusedError: If the global or per-user limit is reached
        """
        async with self._lock:
            existing = self._socket_bindings.get(id(websocket))
            if existing is not None:
                return existing
            self._check_limits(user_id)

        await websocket.accept()

        async with self._lock:
            # Limits may have been reached while the handshake was in flight
            self._check_limits(user_id)

            connection_id = str(uuid4())
            self._connections[connection_id] = ConnectionInfo(
                connection_id=connection_id,
                websocket=websocket,
                user_id=user_id,
                channels={user_id},
            )
            self._socket_bindings[id(websocket)] = connection_id
            self._user_connections[user_id].add(connection_id)
            self._channel_connections[user_id].add(connection_id)
            total = len(self._connections)

        websocket_connections_total.set(total)
        logger.info(
            "WebSocket bound",
            extra={
                "connection_id": connection_id,
                "user_id": user_id,
                "total_connections": total,
            },
        )
        return connection_id

    async def unbind(self, connection_id: str) -> None:
        """Drop a connection and all of its subscriptions.

        No-op when the connection is unknown. Closing the socket is best effort.
        """
        async with self._lock:
            conn_info = self._connections.pop(connection_id, None)
            if conn_info is None:
                return

            for channel in conn_info.channels:
                self._discard(self._channel_connections, channel, connection_id)
            self._discard(self._user_connections, conn_info.user_id, connection_id)
            self._socket_bindings.pop(id(conn_info.websocket), None)
            total = len(self._connections)

        await self._close(conn_info.websocket)

        duration = time.time() - conn_info.connected_at
        websocket_connections_total.set(total)
        websocket_connection_duration_seconds.observe(duration)
        logger.info(
            "WebSocket unbound",
            extra={
                "connection_id": connection_id,
                "user_id": conn_info.user_id,
                "duration_seconds": duration,
                "total_connections": total,
            },
        )

    # ──────────────────────────────────────────────────────────────
    # Subscriptions
    # ──────────────────────────────────────────────────────────────

    async def subscribe(self, connection_id: str, channel: str) -> bool:
        """Subscribe a bound connection to a channel.

        Returns:
            True if subscribed, False if the connection is not bound
        """
        async with self._lock:
            conn_info = self._connections.get(connection_id)
            if conn_info is None:
                return False
            conn_info.channels.add(channel)
            self._channel_connections[channel].add(connection_id)
        return True

    async def subscribe_user(self, user_id: str, channel: str) -> int:
        """Subscribe every live connection of ``user_id`` to a channel.

        Returns:
            Number of connections subscribed
        """
        async with self._lock:
            connection_ids = self._user_connections.get(user_id, set())
            for connection_id in connection_ids:
                self._connections[connection_id].channels.add(channel)
                self._channel_connections[channel].add(connection_id)
            return len(connection_ids)

    async def unsubscribe(self, connection_id: str, channel: str) -> bool:
        """Unsubscribe a connection from a channel.

        The private channel of the bound user cannot be dropped.
        """
        async with self._lock:
            conn_info = self._connections.get(connection_id)
            if conn_info is None or channel == conn_info.user_id:
                return False
            conn_info.channels.discard(channel)
            self._discard(self._channel_connections, channel, connection_id)
        return True

    # ──────────────────────────────────────────────────────────────
    # Delivery
    # ──────────────────────────────────────────────────────────────

    async def publish(self, channel: str, payload: dict[str, Any]) -> int:
        """Deliver ``payload`` to every connection subscribed to ``channel``.

        Writes run concurrently. Subscribers whose write fails are unbound;
        the others are unaffected. A channel without subscribers is a no-op.

        Returns:
            Number of connections the payload was delivered to
        """
        async with self._lock:
            targets = [
                (connection_id, self._connections[connection_id].websocket)
                for connection_id in self._channel_connections.get(channel, ())
            ]

        if not targets:
            websocket_broadcast_recipients.observe(0)
            return 0

        results = await asyncio.gather(
            *(self._deliver(cid, websocket, payload) for cid, websocket in targets)
        )
        failed = [cid for (cid, _), ok in zip(targets, results, strict=True) if not ok]
        await asyncio.gather(*(self.unbind(cid) for cid in failed))

        delivered = len(targets) - len(failed)
        websocket_broadcast_recipients.observe(delivered)
        return delivered

    async def send_to_connection(self, connection_id: str, payload: dict[str, Any]) -> bool:
        """Send ``payload`` to one connection.

        Returns:
            True if sent, False if the connection is unknown or the write failed
        """
        async with self._lock:
            conn_info = self._connections.get(connection_id)
        if conn_info is None:
            return False

        if await self._deliver(connection_id, conn_info.websocket, payload):
            return True
        await self.unbind(connection_id)
        return False

    async def touch(self, connection_id: str) -> None:
        """Record client activity for the heartbeat timeout."""
        async with self._lock:
            conn_info = self._connections.get(connection_id)
            if conn_info is not None:
                conn_info.last_ping = time.time()

    # ──────────────────────────────────────────────────────────────
    # Introspection
    # ──────────────────────────────────────────────────────────────

    def get_connection(self, connection_id: str) -> ConnectionInfo | None:
        """Get connection info by id."""
        return self._connections.get(connection_id)

    def user_connection_ids(self, user_id: str) -> set[str]:
        """Connection ids currently bound to ``user_id``."""
        return set(self._user_connections.get(user_id, ()))

    def channel_subscribers(self, channel: str) -> set[str]:
        """Connection ids currently subscribed to ``channel``."""
        return set(self._channel_connections.get(channel, ()))

    @property
    def connection_count(self) -> int:
        """Total number of bound connections."""
        return len(self._connections)

    @property
    def channel_count(self) -> int:
        """Number of channels with at least one subscriber."""
        return len(self._channel_connections)

    @property
    def user_count(self) -> int:
        """Number of users with at least one live connection."""
        return len(self._user_connections)

    # ──────────────────────────────────────────────────────────────
    # Internals
    # ──────────────────────────────────────────────────────────────

    def _check_limits(self, user_id: str) -> None:
        if len(self._connections) >= self._settings.max_connections:
            logger.warning(
                "Connection refused: max connections reached",
                extra={"max": self._settings.max_connections},
            )
            raise ConnectionRefusedError("Maximum connections reached")
        if len(self._user_connections.get(user_id, ())) >= self._settings.max_connections_per_user:
            logger.warning(
                "Connection refused: per-user limit reached",
                extra={"user_id": user_id, "max": self._settings.max_connections_per_user},
            )
            raise ConnectionRefusedError("Maximum connections per user reached")

    @staticmethod
    def _discard(index: dict[str, set[str]], key: str, connection_id: str) -> None:
        members = index.get(key)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            del index[key]

    async def _deliver(self, connection_id: str, websocket: WebSocket, payload: dict[str, Any]) -> bool:
        try:
            await asyncio.wait_for(websocket.send_json(payload), timeout=self._settings.send_timeout)
        except Exception as e:
            websocket_send_failures_total.inc()
            logger.warning(
                "Failed to send message to connection",
                extra={
                    "connection_id": connection_id,
                    "error": str(e) or type(e).__name__,
                },
            )
            return False
        websocket_messages_sent_total.labels(message_type=payload.get("event", "unknown")).inc()
        return True

    async def _close(self, websocket: WebSocket, **kwargs: Any) -> None:
        # A peer that stopped reading can block the close handshake as well
        with contextlib.suppress(Exception):
            await asyncio.wait_for(websocket.close(**kwargs), timeout=self._settings.send_timeout)

    async def _heartbeat_loop(self) -> None:
        """Ping every connection and drop the ones that went quiet."""
        while self._running:
            await asyncio.sleep(self._settings.heartbeat_interval)

            now = time.time()
            timeout = self._settings.connection_timeout
            async with self._lock:
                snapshot = list(self._connections.values())

            stale = [c for c in snapshot if timeout > 0 and (now - c.last_ping) > timeout]
            for conn_info in stale:
                logger.warning(
                    "Connection timed out",
                    extra={"connection_id": conn_info.connection_id, "user_id": conn_info.user_id},
                )
            await asyncio.gather(*(self.unbind(c.connection_id) for c in stale))

            stale_ids = {c.connection_id for c in stale}
            await asyncio.gather(
                *(
                    self.send_to_connection(c.connection_id, {"event": "ping", "data": {}})
                    for c in snapshot
                    if c.connection_id not in stale_ids
                )
            )


# Process-wide registry, owned by the application lifespan
_registry: ConnectionRegistry | None = None


def get_connection_registry() -> ConnectionRegistry:
    """Get the process-wide connection registry.

    Raises:
        RuntimeError: If the registry has not been started
    """
    if _registry is None:
        raise RuntimeError(
            "Connection registry not initialized. Call start_connection_registry() first."
        )
    return _registry


async def start_connection_registry(
    settings: WebSocketSettings | None = None,
) -> ConnectionRegistry:
    """Create and start the process-wide connection registry."""
    global _registry

    if _registry is None:
        _registry = ConnectionRegistry(settings)
        await _registry.start()
    return _registry


async def stop_connection_registry() -> None:
    """Stop and discard the process-wide connection registry."""
    global _registry

    if _registry is not None:
        await _registry.stop()
        _registry = None
