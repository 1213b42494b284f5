"""Chat history and message limits."""

from __future__ import annotations

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ChatSettings(BaseSettings):
    """Limits applied to chat messages, groups and history queries.

    Environment variables use CHAT_ prefix.
    Example: CHAT_HISTORY_LIMIT=50
    """

    history_limit: int = Field(
        default=20,
        ge=1,
        le=1000,
        description="Default number of messages returned by history queries",
    )
    max_history_limit: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Upper bound a caller may request through ?limit=",
    )
    max_message_length: int = Field(
        default=5000,
        ge=1,
        le=100_000,
        description="Maximum message body length in characters",
    )
    max_group_name_length: int = Field(default=120, ge=1, le=500)
    max_group_members: int = Field(
        default=500,
        ge=1,
        le=10_000,
        description="Maximum number of member ids accepted in a single membership action",
    )

    model_config = SettingsConfigDict(
        env_prefix="CHAT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @model_validator(mode="after")
    def _check_limits(self) -> ChatSettings:
        if self.history_limit > self.max_history_limit:
            msg = "history_limit cannot exceed max_history_limit"
            raise ValueError(msg)
        return self
