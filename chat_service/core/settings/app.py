"""HTTP application settings."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

Environment = Literal["development", "staging", "production", "test"]


class AppSettings(BaseSettings):
    """FastAPI and uvicorn settings.

    Environment variables use APP_ prefix.
    Example: APP_API_PREFIX=/api/v2, APP_DISABLE_DOCS=true
    """

    service_name: str = Field(
        default="chat-service",
        min_length=1,
        max_length=100,
        pattern=r"^[a-z0-9]+(-[a-z0-9]+)*$",
        description="Identifier used in startup logs",
    )
    environment: Environment = Field(default="development")
    title: str = Field(default="Chat Service API", min_length=1, max_length=200)
    description: str = Field(
        default="Real-time messaging and group fan-out for the social platform",
        description="OpenAPI description; Markdown allowed",
    )
    version: str = Field(default="1.0.0", pattern=r"^\d+\.\d+\.\d+(-[a-zA-Z0-9]+)?$")

    api_prefix: str = Field(
        default="/api/v1",
        max_length=255,
        pattern=r"^/.*$",
        description="Mount point of the chat REST routes and the chat socket",
    )
    debug: bool = Field(default=False, description="FastAPI debug mode; also echoes SQL")

    # OpenAPI UIs; APP_DISABLE_DOCS=true hides all three
    docs_url: str | None = "/docs"
    redoc_url: str | None = "/redoc"
    openapi_url: str | None = "/openapi.json"
    disable_docs: bool = False

    host: str = Field(default="0.0.0.0", description="uvicorn bind address")
    port: int = Field(default=8000, ge=1, le=65535)
    reload: bool = Field(default=False, description="uvicorn auto-reload, development only")

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    def _unless_disabled(self, url: str | None) -> str | None:
        return None if self.disable_docs else url

    def get_docs_url(self) -> str | None:
        return self._unless_disabled(self.docs_url)

    def get_redoc_url(self) -> str | None:
        return self._unless_disabled(self.redoc_url)

    def get_openapi_url(self) -> str | None:
        return self._unless_disabled(self.openapi_url)
