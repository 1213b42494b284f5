"""Database-backed tests for group identity and member sets."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import uuid4

import pytest

from chat_service.features.chat.repository import GroupRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from chat_service.features.users.models import User


@pytest.mark.asyncio
async def test_create_with_members_loads_members(db_session: AsyncSession, users: list[User]) -> None:
    alice, bob = users[0], users[1]

    group = await GroupRepository().create_with_members(
        db_session, name="Team", member_ids=[bob.id, alice.id, bob.id]
    )
    await db_session.commit()

    assert group.name == "Team"
    assert [m.username for m in group.members] == ["alice", "bob"]
    assert group.created_at is not None


@pytest.mark.asyncio
async def test_add_members_is_a_union(db_session: AsyncSession, users: list[User]) -> None:
    x, y, z = users[0], users[1], users[2]
    repo = GroupRepository()
    group = await repo.create_with_members(db_session, name="g", member_ids=[y.id, z.id])
    await db_session.commit()

    await repo.add_members(db_session, group.id, [x.id, y.id])
    await db_session.commit()

    members = await repo.member_ids(db_session, group.id)
    assert sorted(members) == sorted([x.id, y.id, z.id])
    assert len(members) == 3


@pytest.mark.asyncio
async def test_create_with_explicit_id(db_session: AsyncSession, users: list[User]) -> None:
    group_id = uuid4()
    repo = GroupRepository()

    group = await repo.create_with_members(
        db_session, name="", member_ids=[users[0].id], group_id=group_id
    )
    await db_session.commit()

    assert group.id == group_id
    assert group.name == ""
    assert await repo.member_ids(db_session, group_id) == [users[0].id]


@pytest.mark.asyncio
async def test_member_ids_of_unknown_group(db_session: AsyncSession, users: list[User]) -> None:
    assert await GroupRepository().member_ids(db_session, uuid4()) == []


@pytest.mark.asyncio
async def test_groups_for_user(db_session: AsyncSession, users: list[User]) -> None:
    alice, bob = users[0], users[1]
    repo = GroupRepository()
    shared = await repo.create_with_members(db_session, name="shared", member_ids=[alice.id, bob.id])
    await repo.create_with_members(db_session, name="bob only", member_ids=[bob.id])
    await db_session.commit()

    assert await repo.group_ids_for_user(db_session, alice.id) == [shared.id]
    assert [g.name for g in await repo.list_for_user(db_session, alice.id)] == ["shared"]
    assert {g.name for g in await repo.list_all(db_session)} == {"shared", "bob only"}
