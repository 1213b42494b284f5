"""Real-time dependencies for FastAPI route handlers.

Usage:
    from chat_service.core.dependencies.realtime import RegistryDep

    @router.get("/stats")
    async def stats(registry: RegistryDep):
        return {"connections": registry.connection_count}
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends

from chat_service.core.exceptions import ServiceUnavailableException


def get_registry_optional() -> ConnectionRegistry | None:
    """Get the connection registry, or None if it has not been started."""
    from chat_service.infra.realtime import get_connection_registry

    try:
        return get_connection_registry()
    except RuntimeError:
        return None


def get_dispatch_engine_optional() -> DispatchEngine | None:
    """Get the dispatch engine, or None if it has not been started."""
    from chat_service.features.chat.dispatch import get_dispatch_engine

    try:
        return get_dispatch_engine()
    except RuntimeError:
        return None


async def require_registry(
    registry: Annotated[ConnectionRegistry | None, Depends(get_registry_optional)],
) -> ConnectionRegistry:
    """Dependency that requires the connection registry.

    Raises:
        ServiceUnavailableException: 503 if the registry is not running
    """
    if registry is None:
        raise ServiceUnavailableException(
            detail="Connection registry is not available",
            type="realtime-unavailable",
        )
    return registry


# Imported after the functions above to avoid a cycle through features.chat
from chat_service.features.chat.dispatch import DispatchEngine  # noqa: E402
from chat_service.infra.realtime import ConnectionRegistry  # noqa: E402

RegistryDep = Annotated[ConnectionRegistry, Depends(require_registry)]
"""Connection registry that must be running."""

OptionalDispatchEngine = Annotated[DispatchEngine | None, Depends(get_dispatch_engine_optional)]
"""Dispatch engine if started, else None."""
