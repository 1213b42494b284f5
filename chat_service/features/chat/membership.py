"""Group membership synchronizer.

Creates groups, unions new members into existing ones and keeps live
connections' group subscriptions in step with the stored member sets.

Mutations of one group run one at a time: each group id has its own
asyncio lock, held from the member read through the commit. The union
itself is an insert-or-ignore statement, so the member set stays a set
even if another process writes concurrently.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
import logging
from typing import TYPE_CHECKING, Any

from chat_service.core.exceptions import NotFoundException
from chat_service.features.chat.repository import get_group_repository
from chat_service.features.chat.schemas import (
    AddMembersIn,
    CreateGroupIn,
    GroupOut,
    MembersAddedOut,
    ServerEvent,
    parse_payload,
    server_frame,
)
from chat_service.features.users.repository import get_user_repository
from chat_service.infra.database import get_async_session
from chat_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from chat_service.features.chat.repository import GroupRepository
    from chat_service.features.users.repository import UserRepository
    from chat_service.infra.database import SessionFactory
    from chat_service.infra.realtime import ConnectionRegistry

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)


async def ensure_users_exist(users: UserRepository, session: AsyncSession, user_ids: Iterable[UUID]) -> None:
    """Raise NotFoundException naming every id without a user row."""
    missing = await users.missing_ids(session, user_ids)
    if missing:
        raise NotFoundException(
            detail="User not found",
            type="user-not-found",
            extra={"user_ids": sorted(str(u) for u in missing)},
        )


class MembershipSynchronizer:
    """Applies createGroup and addUsersToGroup actions."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        session_factory: SessionFactory = get_async_session,
        *,
        groups: GroupRepository | None = None,
        users: UserRepository | None = None,
    ) -> None:
        self._registry = registry
        self._session_factory = session_factory
        self._groups = groups or get_group_repository()
        self._users = users or get_user_repository()
        self._locks: dict[UUID, asyncio.Lock] = {}
        self._lock_holders: dict[UUID, int] = defaultdict(int)

    @asynccontextmanager
    async def group_lock(self, group_id: UUID) -> AsyncIterator[None]:
        """Serialize mutations of one group; the lock is dropped once idle."""
        lock = self._locks.setdefault(group_id, asyncio.Lock())
        self._lock_holders[group_id] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_holders[group_id] -= 1
            if self._lock_holders[group_id] == 0:
                del self._lock_holders[group_id]
                del self._locks[group_id]

    async def create_group(self, connection_id: str, user_id: UUID, data: dict[str, Any]) -> GroupOut:
        """Create a group and announce it on the group channel.

        The invoking connection and every live connection of every named
        member are subscribed to the new group channel before the
        ``groupCreated`` publish.
        """
        payload = parse_payload(CreateGroupIn, data)

        async with self._session_factory() as session:
            await ensure_users_exist(self._users, session, payload.member_ids)
            group = await self._groups.create_with_members(
                session, name=payload.group_name, member_ids=payload.member_ids
            )
            await session.commit()
            out = GroupOut.model_validate(group)

        channel = str(out.id)
        await self._registry.subscribe(connection_id, channel)
        for member_id in payload.member_ids:
            await self._registry.subscribe_user(str(member_id), channel)

        delivered = await self._registry.publish(
            channel, server_frame(ServerEvent.GROUP_CREATED, out.to_wire())
        )
        logger.info(
            "Chat group created",
            extra={
                "group_id": channel,
                "created_by": str(user_id),
                "member_count": len(payload.member_ids),
                "delivered": delivered,
            },
        )
        return out

    async def add_members(self, connection_id: str, user_id: UUID, data: dict[str, Any]) -> MembersAddedOut:
        """Union members into a group, materializing the group if unknown.

        Every member of the resulting set receives one ``usersAddedToGroup``
        on their private channel. Re-adding present members is a no-op on
        the stored set and still notifies.
        """
        payload = parse_payload(AddMembersIn, data)
        group_id = payload.group_id

        async with self.group_lock(group_id):
            async with self._session_factory() as session:
                await ensure_users_exist(self._users, session, payload.member_ids)
                group = await self._groups.get(session, group_id)
                if group is None:
                    before: set[UUID] = set()
                    await self._groups.create_with_members(
                        session, name="", member_ids=payload.member_ids, group_id=group_id
                    )
                    logger.info("Chat group materialized on reference", extra={"group_id": str(group_id)})
                else:
                    before = set(await self._groups.member_ids(session, group_id))
                    await self._groups.add_members(session, group_id, payload.member_ids)
                await session.commit()
                members = await self._groups.member_ids(session, group_id)

        added = [m for m in members if m not in before]
        channel = str(group_id)
        for member_id in added:
            await self._registry.subscribe_user(str(member_id), channel)

        out = MembersAddedOut(group_id=group_id, user_ids=payload.member_ids, members=members)
        frame = server_frame(ServerEvent.USERS_ADDED_TO_GROUP, out.to_wire())
        await asyncio.gather(*(self._registry.publish(str(m), frame) for m in members))

        logger.info(
            "Members added to chat group",
            extra={
                "group_id": channel,
                "requested_by": str(user_id),
                "added": len(added),
                "member_count": len(members),
            },
        )
        lazy_logger.debug(lambda: f"group {group_id} members now {sorted(map(str, members))}")
        return out

    async def restore_subscriptions(self, connection_id: str, user_id: UUID) -> list[str]:
        """Subscribe a freshly bound connection to all of its user's groups.

        Returns:
            Group channels the connection was subscribed to
        """
        async with self._session_factory() as session:
            group_ids = await self._groups.group_ids_for_user(session, user_id)

        channels = [str(g) for g in group_ids]
        for channel in channels:
            await self._registry.subscribe(connection_id, channel)
        return channels
