"""Logging configuration settings."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# Libraries that log per statement or per request at INFO/DEBUG
_DEFAULT_LOGGER_LEVELS: dict[str, LogLevel] = {
    "aiosqlite": "WARNING",
    "sqlalchemy.engine": "WARNING",
    "uvicorn.access": "WARNING",
}


class LoggingSettings(BaseSettings):
    """Where chat service logs go and how they look.

    Environment variables use LOG_ prefix.
    Example: LOG_LEVEL=DEBUG, LOG_JSON_FORMAT=false, LOG_FILE_ENABLED=true
    """

    service_name: str = Field(
        default="chat-service",
        description="Value of the static 'service' field on every JSON record",
    )
    level: LogLevel = Field(default="INFO", description="Root logger level")
    json_format: bool = Field(
        default=True,
        description="One JSON object per line; False switches to plain text for local runs",
    )
    logger_levels: dict[str, LogLevel] = Field(
        default_factory=lambda: dict(_DEFAULT_LOGGER_LEVELS),
        description="Per-logger level overrides, e.g. LOG_LOGGER_LEVELS='{\"aiosqlite\": \"DEBUG\"}'",
    )

    # Rotating file output
    file_enabled: bool = Field(default=False, description="Also write records to file_path")
    file_path: Path = Field(default=Path("logs/chat-service.jsonl"))
    file_max_bytes: int = Field(default=10 * 1024 * 1024, ge=1024, le=1024**3)
    file_backup_count: int = Field(default=5, ge=0, le=100)

    console_enabled: bool = Field(default=True, description="Write records to stderr")
    include_context: bool = Field(
        default=True,
        description="Stamp connection_id/user_id from set_log_context() onto records",
    )
    capture_warnings: bool = Field(default=True, description="Route `warnings` through logging")

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @field_validator("level", mode="before")
    @classmethod
    def upper_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    @field_validator("logger_levels", mode="before")
    @classmethod
    def upper_logger_levels(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return {name: lvl.upper() if isinstance(lvl, str) else lvl for name, lvl in v.items()}
        return v

    def to_logging_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``configure_logging``."""
        return {
            "service_name": self.service_name,
            "log_level": self.level,
            "json_logs": self.json_format,
            "logger_levels": dict(self.logger_levels),
            "file_path": self.file_path if self.file_enabled else None,
            "file_max_bytes": self.file_max_bytes,
            "file_backup_count": self.file_backup_count,
            "console_enabled": self.console_enabled,
            "include_context": self.include_context,
            "capture_warnings": self.capture_warnings,
        }
