"""Repositories for chat messages and groups."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import selectinload

from chat_service.core.database import (
    BaseRepository,
    LimitOffset,
    MessageInvariantError,
    OrderBy,
    RepositoryError,
)
from chat_service.features.chat.filters import AllMessages
from chat_service.features.chat.models import (
    ChatGroup,
    ChatMessage,
    chat_group_members,
    message_clock,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from chat_service.core.database import StatementFilter

DEFAULT_HISTORY_LIMIT = 20

_PARTICIPANTS = (
    selectinload(ChatMessage.sender),
    selectinload(ChatMessage.receiver),
    selectinload(ChatMessage.group),
)


class MessageRepository(BaseRepository[ChatMessage]):
    """Append-only message store.

    Messages are never updated or deleted. History reads are newest first,
    ordered by ``timestamp`` with the time-sortable id as tie-breaker.
    """

    def __init__(self) -> None:
        super().__init__(ChatMessage)

    async def create(self, session: AsyncSession, instance: ChatMessage) -> ChatMessage:
        """Persist a message and return it with sender, receiver and group loaded.

        Raises:
            MessageInvariantError: If the audience fields are inconsistent
        """
        self._check_audience(instance)
        if instance.timestamp is None:
            instance.timestamp = message_clock.now()

        await super().create(session, instance)
        stored = await self.get_with_participants(session, instance.id)
        if stored is None:
            raise RepositoryError("Message vanished after insert", {"id": str(instance.id)})

        self._logger.info(
            "Message stored",
            extra={
                "message_id": str(stored.id),
                "sender_id": str(stored.sender_id),
                "is_group": stored.is_group,
            },
        )
        return stored

    async def get_with_participants(self, session: AsyncSession, message_id: UUID) -> ChatMessage | None:
        """Load one message with its participants, refreshing any cached copy."""
        stmt = (
            select(ChatMessage)
            .where(ChatMessage.id == message_id)
            .options(*_PARTICIPANTS)
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_recent(
        self,
        session: AsyncSession,
        message_filter: StatementFilter | None = None,
        *,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> Sequence[ChatMessage]:
        """Return up to ``limit`` matching messages, most recent first.

        An empty sequence is a valid result.
        """
        return await self.list(
            session,
            message_filter or AllMessages(),
            OrderBy(ChatMessage.timestamp, "desc"),
            OrderBy(ChatMessage.id, "desc"),
            LimitOffset(limit),
            options=_PARTICIPANTS,
        )

    @staticmethod
    def _check_audience(instance: ChatMessage) -> None:
        if instance.is_group:
            valid = instance.group_id is not None and instance.receiver_id is None
        else:
            valid = instance.receiver_id is not None and instance.group_id is None
        if not valid or instance.sender_id is None or not instance.message:
            raise MessageInvariantError(
                "Message must have a sender, a body and exactly one of receiver or group",
                {
                    "is_group": instance.is_group,
                    "receiver_id": instance.receiver_id,
                    "group_id": instance.group_id,
                },
            )


class GroupRepository(BaseRepository[ChatGroup]):
    """Group identity and member-set store.

    Member sets only grow. ``add_members`` is a single insert-or-ignore
    statement against the composite primary key, so concurrent unions
    cannot drop each other's members.
    """

    def __init__(self) -> None:
        super().__init__(ChatGroup)

    async def get_with_members(self, session: AsyncSession, group_id: UUID) -> ChatGroup | None:
        """Load one group with its member users."""
        stmt = (
            select(ChatGroup)
            .where(ChatGroup.id == group_id)
            .options(selectinload(ChatGroup.members))
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def create_with_members(
        self,
        session: AsyncSession,
        *,
        name: str,
        member_ids: Iterable[UUID],
        group_id: UUID | None = None,
    ) -> ChatGroup:
        """Create a group holding exactly ``member_ids``.

        Args:
            session: Database session
            name: Display name (empty for groups materialized on reference)
            member_ids: Initial members; duplicates are collapsed
            group_id: Explicit id, used when materializing a referenced group
        """
        group = ChatGroup(name=name) if group_id is None else ChatGroup(id=group_id, name=name)
        await self.create(session, group)
        await self.add_members(session, group.id, member_ids)

        loaded = await self.get_with_members(session, group.id)
        if loaded is None:
            raise RepositoryError("Group vanished after insert", {"id": str(group.id)})
        return loaded

    async def add_members(self, session: AsyncSession, group_id: UUID, member_ids: Iterable[UUID]) -> None:
        """Union ``member_ids`` into the group's member set.

        Already-present members are skipped by the database.
        """
        rows = [{"group_id": group_id, "user_id": user_id} for user_id in dict.fromkeys(member_ids)]
        if not rows:
            return

        dialect = session.get_bind().dialect.name
        if dialect == "postgresql":
            stmt = pg_insert(chat_group_members).values(rows)
        elif dialect == "sqlite":
            stmt = sqlite_insert(chat_group_members).values(rows)
        else:
            raise RepositoryError("Unsupported dialect for member union", {"dialect": dialect})

        await session.execute(stmt.on_conflict_do_nothing(index_elements=["group_id", "user_id"]))
        self._lazy.debug(lambda: f"groups.add_members({group_id}) <- {len(rows)} ids")

    async def member_ids(self, session: AsyncSession, group_id: UUID) -> list[UUID]:
        """Current member ids of a group (empty for unknown groups)."""
        stmt = (
            select(chat_group_members.c.user_id)
            .where(chat_group_members.c.group_id == group_id)
            .order_by(chat_group_members.c.added_at, chat_group_members.c.user_id)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def group_ids_for_user(self, session: AsyncSession, user_id: UUID) -> list[UUID]:
        """Ids of every group ``user_id`` belongs to."""
        stmt = select(chat_group_members.c.group_id).where(chat_group_members.c.user_id == user_id)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def list_all(self, session: AsyncSession) -> Sequence[ChatGroup]:
        """Every group with members, newest first."""
        stmt = (
            select(ChatGroup)
            .options(selectinload(ChatGroup.members))
            .order_by(ChatGroup.created_at.desc(), ChatGroup.id)
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def list_for_user(self, session: AsyncSession, user_id: UUID) -> Sequence[ChatGroup]:
        """Groups ``user_id`` belongs to, with members, newest first."""
        stmt = (
            select(ChatGroup)
            .join(chat_group_members, chat_group_members.c.group_id == ChatGroup.id)
            .where(chat_group_members.c.user_id == user_id)
            .options(selectinload(ChatGroup.members))
            .order_by(ChatGroup.created_at.desc(), ChatGroup.id)
        )
        result = await session.execute(stmt)
        return result.scalars().all()


_message_repository: MessageRepository | None = None
_group_repository: GroupRepository | None = None


def get_message_repository() -> MessageRepository:
    """Get MessageRepository instance."""
    global _message_repository
    if _message_repository is None:
        _message_repository = MessageRepository()
    return _message_repository


def get_group_repository() -> GroupRepository:
    """Get GroupRepository instance."""
    global _group_repository
    if _group_repository is None:
        _group_repository = GroupRepository()
    return _group_repository
