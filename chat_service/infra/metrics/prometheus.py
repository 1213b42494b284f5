"""Prometheus metrics for the real-time chat path."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

# Custom registry so tests and multiple app instances don't collide with the default one
REGISTRY = CollectorRegistry()

# WebSocket metrics
websocket_connections_total = Gauge(
    "websocket_connections_total",
    "Current number of active WebSocket connections",
    registry=REGISTRY,
)

websocket_messages_received_total = Counter(
    "websocket_messages_received_total",
    "Total number of WebSocket frames received from clients",
    ["message_type"],
    registry=REGISTRY,
)

websocket_messages_sent_total = Counter(
    "websocket_messages_sent_total",
    "Total number of WebSocket frames delivered to clients",
    ["message_type"],
    registry=REGISTRY,
)

websocket_send_failures_total = Counter(
    "websocket_send_failures_total",
    "WebSocket writes that failed or timed out during fan-out",
    registry=REGISTRY,
)

websocket_connection_duration_seconds = Histogram(
    "websocket_connection_duration_seconds",
    "Duration of WebSocket connections in seconds",
    buckets=(1, 5, 10, 30, 60, 120, 300, 600, 1800, 3600),
    registry=REGISTRY,
)

websocket_broadcast_recipients = Histogram(
    "websocket_broadcast_recipients",
    "Number of connections reached per channel publish",
    buckets=(0, 1, 2, 5, 10, 25, 50, 100, 250, 500, 1000),
    registry=REGISTRY,
)

# Chat action metrics
chat_actions_total = Counter(
    "chat_actions_total",
    "Chat actions handled by the dispatcher, by action and outcome",
    ["action", "outcome"],
    registry=REGISTRY,
)

chat_action_duration_seconds = Histogram(
    "chat_action_duration_seconds",
    "Time from action start to the end of its fan-out",
    ["action"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
    registry=REGISTRY,
)
