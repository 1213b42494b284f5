"""Chat history queries for the REST API.

Every query returns the newest messages first. An empty result is a
``NotFoundException`` with a query-specific message, not an empty list.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from chat_service.core.exceptions import NotFoundException
from chat_service.core.settings import get_chat_settings
from chat_service.features.chat.filters import (
    AllMessages,
    MessagesBetweenUsers,
    MessagesForUser,
    MessagesInGroup,
)
from chat_service.features.chat.repository import get_group_repository, get_message_repository
from chat_service.features.chat.schemas import GroupOut, MessageOut
from chat_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from chat_service.core.database import StatementFilter
    from chat_service.core.settings import ChatSettings
    from chat_service.features.chat.repository import GroupRepository, MessageRepository

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)


class ChatHistoryService:
    """Read side of the chat feature.

    Example:
        service = ChatHistoryService(session)
        messages = await service.messages_between(caller_id, other_id, limit=50)
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        messages: MessageRepository | None = None,
        groups: GroupRepository | None = None,
        settings: ChatSettings | None = None,
    ) -> None:
        self.session = session
        self._messages = messages or get_message_repository()
        self._groups = groups or get_group_repository()
        self._settings = settings or get_chat_settings()

    def effective_limit(self, limit: int | None) -> int:
        """Apply the default and the cap to a caller-supplied limit."""
        if limit is None:
            return self._settings.history_limit
        return max(1, min(limit, self._settings.max_history_limit))

    # ──────────────────────────────────────────────────────────────
    # Groups
    # ──────────────────────────────────────────────────────────────

    async def list_groups(self) -> list[GroupOut]:
        groups = await self._groups.list_all(self.session)
        if not groups:
            raise NotFoundException(detail="No chat group found")
        return [GroupOut.model_validate(g) for g in groups]

    async def list_groups_for_user(self, user_id: UUID) -> list[GroupOut]:
        groups = await self._groups.list_for_user(self.session, user_id)
        if not groups:
            raise NotFoundException(detail="No chat group found", extra={"user_id": str(user_id)})
        return [GroupOut.model_validate(g) for g in groups]

    async def get_group(self, group_id: UUID) -> GroupOut:
        group = await self._groups.get_with_members(self.session, group_id)
        if group is None:
            raise NotFoundException(
                detail="Chat group not found",
                type="chat-group-not-found",
                extra={"group_id": str(group_id)},
            )
        return GroupOut.model_validate(group)

    # ──────────────────────────────────────────────────────────────
    # Messages
    # ──────────────────────────────────────────────────────────────

    async def all_messages(self, limit: int | None = None) -> list[MessageOut]:
        return await self._history(AllMessages(), limit, "No chat found")

    async def messages_for_user(self, user_id: UUID, limit: int | None = None) -> list[MessageOut]:
        return await self._history(MessagesForUser(user_id), limit, "No chat found for this user")

    async def messages_between(self, user_id: UUID, other_id: UUID, limit: int | None = None) -> list[MessageOut]:
        return await self._history(
            MessagesBetweenUsers(user_id, other_id), limit, "No chat found between these users"
        )

    async def group_messages(self, group_id: UUID, limit: int | None = None) -> list[MessageOut]:
        return await self._history(MessagesInGroup(group_id), limit, "No chat found for this group")

    async def _history(self, message_filter: StatementFilter, limit: int | None, empty_detail: str) -> list[MessageOut]:
        rows = await self._messages.list_recent(
            self.session, message_filter, limit=self.effective_limit(limit)
        )
        lazy_logger.debug(lambda: f"history {type(message_filter).__name__} -> {len(rows)} messages")
        if not rows:
            raise NotFoundException(detail=empty_detail)
        return [MessageOut.model_validate(m) for m in rows]
