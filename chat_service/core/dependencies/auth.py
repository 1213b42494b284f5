"""Caller identity dependencies.

Authentication happens upstream. The verified user id arrives in the
header named by ``AUTH_IDENTITY_HEADER`` (``X-User-Id`` by default); the
WebSocket handshake may instead carry it as ``?userId=``.

Usage:
    from chat_service.core.dependencies.auth import CurrentUserId

    @router.get("/my-groups")
    async def my_groups(user_id: CurrentUserId):
        ...
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Annotated
from uuid import UUID

from fastapi import Depends, Request

from chat_service.core.exceptions import UnauthorizedException
from chat_service.core.settings import get_auth_settings

if TYPE_CHECKING:
    from fastapi import WebSocket

logger = logging.getLogger(__name__)


def parse_identity(raw: str | None) -> UUID | None:
    """Parse a user id, returning None for missing or malformed values."""
    if not raw:
        return None
    try:
        return UUID(raw.strip())
    except ValueError:
        return None


def resolve_websocket_identity(websocket: WebSocket) -> UUID | None:
    """Resolve the identity of a WebSocket handshake.

    The identity header wins; ``?userId=`` is consulted only when the header
    is absent and ``AUTH_ALLOW_QUERY_IDENTITY`` is enabled.
    """
    settings = get_auth_settings()
    raw = websocket.headers.get(settings.identity_header)
    if raw is None and settings.allow_query_identity:
        raw = websocket.query_params.get("userId")
    return parse_identity(raw)


async def get_current_user_id(request: Request) -> UUID:
    """Return the verified caller id of an HTTP request.

    Raises:
        UnauthorizedException: If the identity header is missing or malformed
    """
    header = get_auth_settings().identity_header
    user_id = parse_identity(request.headers.get(header))
    if user_id is None:
        logger.info("Request without a valid caller identity", extra={"path": request.url.path})
        raise UnauthorizedException(
            detail=f"Missing or invalid {header} header",
            extra={"header": header},
        )
    return user_id


CurrentUserId = Annotated[UUID, Depends(get_current_user_id)]
"""Verified caller id; requests without one get 401."""
