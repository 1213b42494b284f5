"""Router registry and setup."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from chat_service.core.settings import get_app_settings, get_websocket_settings
from chat_service.features.chat.gateway import router as chat_gateway_router
from chat_service.features.chat.router import router as chat_router
from chat_service.features.metrics.router import router as metrics_router

if TYPE_CHECKING:
    from fastapi import FastAPI

    from chat_service.core.settings import AppSettings, WebSocketSettings

logger = logging.getLogger(__name__)


def setup_routers(
    app: FastAPI,
    app_settings: AppSettings | None = None,
    websocket_settings: WebSocketSettings | None = None,
) -> None:
    """Register all feature routers with the application.

    Args:
        app: FastAPI application instance.
        app_settings: Optional override for the API prefix.
        websocket_settings: Optional override deciding whether the chat socket is mounted.
    """
    app_settings = app_settings or get_app_settings()
    websocket_settings = websocket_settings or get_websocket_settings()

    api_prefix = app_settings.api_prefix

    # Metrics endpoint (no prefix - accessible at /metrics)
    app.include_router(metrics_router)

    app.include_router(chat_router, prefix=api_prefix)

    if websocket_settings.enabled:
        app.include_router(chat_gateway_router, prefix=api_prefix)
        logger.info("Chat WebSocket endpoint enabled", extra={"path": f"{api_prefix}/chat/ws"})

    logger.info("Routers configured", extra={"api_prefix": api_prefix})
