"""FastAPI application factory."""

from __future__ import annotations

from fastapi import FastAPI

from chat_service.app.exception_handlers import configure_exception_handlers
from chat_service.app.lifespan import lifespan
from chat_service.app.router import setup_routers
from chat_service.core.settings import get_app_settings, get_websocket_settings


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    app_settings = get_app_settings()

    app = FastAPI(
        title=app_settings.title,
        description=app_settings.description,
        version=app_settings.version,
        docs_url=app_settings.get_docs_url(),
        redoc_url=app_settings.get_redoc_url(),
        openapi_url=app_settings.get_openapi_url(),
        debug=app_settings.debug,
        lifespan=lifespan,
    )

    # Exception handlers first so router setup errors are reported the same way
    configure_exception_handlers(app)

    setup_routers(app, app_settings, get_websocket_settings())

    return app


# Application instance for uvicorn
app = create_app()
