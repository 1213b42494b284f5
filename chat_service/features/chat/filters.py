"""Message history filters.

One filter per history query. Each narrows a ``select(ChatMessage)``
statement and composes with ordering and limit filters.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, or_

from chat_service.core.database import StatementFilter
from chat_service.features.chat.models import ChatMessage

if TYPE_CHECKING:
    from uuid import UUID

    from sqlalchemy import Select


@dataclass(frozen=True, slots=True)
class AllMessages(StatementFilter):
    """No narrowing: every individual and group message."""

    def apply(self, statement: Select[Any]) -> Select[Any]:
        return statement


@dataclass(frozen=True, slots=True)
class MessagesForUser(StatementFilter):
    """Messages the user sent or received directly."""

    user_id: UUID

    def apply(self, statement: Select[Any]) -> Select[Any]:
        return statement.where(
            or_(ChatMessage.sender_id == self.user_id, ChatMessage.receiver_id == self.user_id)
        )


@dataclass(frozen=True, slots=True)
class MessagesInGroup(StatementFilter):
    """Messages posted to one group, matched strictly on the group id."""

    group_id: UUID

    def apply(self, statement: Select[Any]) -> Select[Any]:
        return statement.where(ChatMessage.group_id == self.group_id)


@dataclass(frozen=True, slots=True)
class MessagesBetweenUsers(StatementFilter):
    """Individual messages exchanged by two users, in either direction."""

    user_a: UUID
    user_b: UUID

    def apply(self, statement: Select[Any]) -> Select[Any]:
        return statement.where(
            ChatMessage.is_group.is_(False),
            or_(
                and_(ChatMessage.sender_id == self.user_a, ChatMessage.receiver_id == self.user_b),
                and_(ChatMessage.sender_id == self.user_b, ChatMessage.receiver_id == self.user_a),
            ),
        )


__all__ = ["AllMessages", "MessagesBetweenUsers", "MessagesForUser", "MessagesInGroup"]
