"""Entry point: run the chat service under uvicorn."""

from __future__ import annotations

import sys
from typing import NoReturn


def run_server() -> NoReturn:
    """Run the FastAPI application server with settings from configuration."""
    import uvicorn

    from chat_service.core.settings import get_app_settings, get_logging_settings

    settings = get_app_settings()
    log_settings = get_logging_settings()

    uvicorn.run(
        "chat_service.app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        access_log=settings.debug,
        log_level=log_settings.level.lower(),
    )
    sys.exit(0)


def main() -> NoReturn:
    run_server()


if __name__ == "__main__":
    main()
