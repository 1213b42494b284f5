"""Real-time chat: messages, groups, fan-out and history.

Usage:
    from chat_service.features.chat import ChatMessage, get_message_repository

    async with get_async_session() as session:
        recent = await get_message_repository().list_recent(
            session, MessagesInGroup(group_id), limit=20
        )

The socket gateway (``gateway.router``), the REST API (``router.router``) and
the dispatch engine (``dispatch``) are imported from their modules directly.
"""

from __future__ import annotations

from .filters import AllMessages, MessagesBetweenUsers, MessagesForUser, MessagesInGroup
from .models import ChatGroup, ChatMessage, MessageClock, chat_group_members, message_clock
from .repository import (
    GroupRepository,
    MessageRepository,
    get_group_repository,
    get_message_repository,
)
from .schemas import ClientEvent, GroupOut, MessageOut, ServerEvent

__all__ = [
    "AllMessages",
    "ChatGroup",
    "ChatMessage",
    "ClientEvent",
    "GroupOut",
    "GroupRepository",
    "MessageClock",
    "MessageOut",
    "MessageRepository",
    "MessagesBetweenUsers",
    "MessagesForUser",
    "MessagesInGroup",
    "ServerEvent",
    "chat_group_members",
    "get_group_repository",
    "get_message_repository",
]
