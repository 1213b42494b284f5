"""Database settings (``DB_*``).

PostgreSQL through psycopg is the production target. Either set
``DATABASE_URL`` or the individual ``DB_HOST``/``DB_USER``/... fields; a URL
overrides whatever components it carries. With ``DB_ENABLED=false`` the
service runs on a local SQLite file through aiosqlite.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote_plus, unquote, urlparse

from pydantic import Field, SecretStr, computed_field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SQLITE_FALLBACK_URL = "sqlite+aiosqlite:///./chat.db"


class PostgresSettings(BaseSettings):
    """Connection target and pool sizing for the async engine."""

    enabled: bool = True
    create_tables: bool = Field(default=False, description="Run create_all on startup; local development only")

    dsn: str | None = Field(default=None, alias="DATABASE_URL")

    host: str = Field(default="localhost", min_length=1, max_length=255)
    port: int = Field(default=5432, ge=1, le=65535)
    user: str = Field(default="postgres", min_length=1, max_length=100)
    password: SecretStr = SecretStr("postgres")
    name: str = Field(default="chat_service", min_length=1, max_length=100)
    driver: str = Field(default="psycopg", description="Async driver in the URL scheme")
    application_name: str = Field(default="chat-service", max_length=100, description="Shown in pg_stat_activity")

    pool_size: int = Field(default=10, ge=1, le=100)
    max_overflow: int = Field(default=10, ge=0, le=100)
    pool_pre_ping: bool = True
    pool_timeout: float = Field(default=30.0, ge=0.1, le=300.0)
    pool_recycle: int = Field(default=1800, ge=0, le=86400, description="Seconds before a pooled connection is replaced")
    echo: bool = False

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        populate_by_name=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @model_validator(mode="after")
    def _apply_dsn(self) -> PostgresSettings:
        if not self.dsn:
            return self
        parsed = urlparse(self.dsn)
        scheme_driver = parsed.scheme.partition("+")[2]
        overrides: dict[str, Any] = {
            "host": parsed.hostname,
            "port": parsed.port,
            "user": unquote(parsed.username) if parsed.username else None,
            "password": SecretStr(unquote(parsed.password)) if parsed.password else None,
            "name": parsed.path.lstrip("/") or None,
            "driver": scheme_driver or None,
        }
        # Frozen model: bypass the pydantic setattr guard
        for field, value in overrides.items():
            if value is not None:
                object.__setattr__(self, field, value)
        return self

    @computed_field  # type: ignore[misc]
    @property
    def url(self) -> str:
        password = quote_plus(self.password.get_secret_value())
        return (
            f"postgresql+{self.driver}://{self.user}:{password}@{self.host}:{self.port}/{self.name}"
            f"?application_name={quote_plus(self.application_name)}"
        )

    @property
    def is_configured(self) -> bool:
        return self.enabled and bool(self.host and self.name)

    def get_sqlalchemy_url(self) -> str:
        return self.url if self.is_configured else SQLITE_FALLBACK_URL

    def sqlalchemy_engine_kwargs(self) -> dict[str, Any]:
        """``create_async_engine`` kwargs; SQLite takes no pool options."""
        if not self.is_configured:
            return {"echo": self.echo}
        return {
            "echo": self.echo,
            "pool_size": self.pool_size,
            "max_overflow": self.max_overflow,
            "pool_pre_ping": self.pool_pre_ping,
            "pool_timeout": self.pool_timeout,
            "pool_recycle": self.pool_recycle,
        }
