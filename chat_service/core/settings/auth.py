"""Identity resolution settings.

Token verification happens upstream; this service trusts the identity
header the gateway forwards.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AuthSettings(BaseSettings):
    """Caller identity settings.

    Environment variables use AUTH_ prefix.
    Example: AUTH_IDENTITY_HEADER=X-Authenticated-User
    """

    identity_header: str = Field(
        default="X-User-Id",
        min_length=1,
        max_length=100,
        description="Header carrying the verified caller identity",
    )
    allow_query_identity: bool = Field(
        default=True,
        description="Accept ?userId= on the WebSocket handshake when no identity header is present",
    )

    model_config = SettingsConfigDict(
        env_prefix="AUTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
