"""Chat socket settings (``WS_*``)."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class WebSocketSettings(BaseSettings):
    """Limits and liveness checks for the connection registry.

    Example: WS_HEARTBEAT_INTERVAL=0 disables server pings entirely.
    """

    enabled: bool = Field(default=True, description="Mount the /chat/ws gateway")

    # Admission
    max_connections: int = Field(default=10_000, ge=1, le=100_000)
    max_connections_per_user: int = Field(default=10, ge=1, le=100, description="Open sockets (devices) per user")
    max_message_size: int = Field(
        default=64 * 1024,
        ge=1024,
        le=1024 * 1024,
        description="Inbound text frames above this many bytes are rejected",
    )

    # Liveness; 0 switches either check off
    heartbeat_interval: float = Field(default=30.0, ge=0, le=300, description="Seconds between server pings")
    connection_timeout: float = Field(default=60.0, ge=0, le=600, description="Seconds of silence before eviction")
    send_timeout: float = Field(default=5.0, gt=0, le=60, description="Per-socket write bound during fan-out")

    emit_action_errors: bool = Field(
        default=True,
        description="Reply with an 'error' event to the caller whose action failed; otherwise only log it",
    )

    model_config = SettingsConfigDict(
        env_prefix="WS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
