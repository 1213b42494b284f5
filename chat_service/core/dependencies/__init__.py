"""FastAPI dependencies for route handlers.

Re-exports the dependencies routers use so features import them from one
place.

Usage:
    from chat_service.core.dependencies import CurrentUserId, get_db_session

    @router.get("/my-groups")
    async def my_groups(
        user_id: CurrentUserId,
        session: AsyncSession = Depends(get_db_session),
    ):
        ...
"""

from __future__ import annotations

from .auth import CurrentUserId, get_current_user_id, parse_identity, resolve_websocket_identity
from .database import get_db_session

__all__ = [
    "CurrentUserId",
    "get_current_user_id",
    "get_db_session",
    "parse_identity",
    "resolve_websocket_identity",
]
