"""REST API tests for chat history, groups and operational endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import uuid4

import pytest

from chat_service.features.chat.models import ChatMessage
from chat_service.features.chat.repository import GroupRepository, MessageRepository

if TYPE_CHECKING:
    from httpx import AsyncClient
    from sqlalchemy.ext.asyncio import AsyncSession

    from chat_service.features.users.models import User

PREFIX = "/api/v1/chat"


def _as(user: User) -> dict[str, str]:
    return {"X-User-Id": str(user.id)}


async def _direct(session: AsyncSession, sender: User, receiver: User, text: str) -> None:
    await MessageRepository().create(
        session, ChatMessage(sender_id=sender.id, receiver_id=receiver.id, message=text, is_group=False)
    )
    await session.commit()


@pytest.mark.asyncio
async def test_requires_identity_header(client: AsyncClient) -> None:
    response = await client.get(f"{PREFIX}/all")

    assert response.status_code == 401
    body = response.json()
    assert body["type"] == "unauthorized"
    assert body["status"] == 401


@pytest.mark.asyncio
async def test_malformed_identity_rejected(client: AsyncClient) -> None:
    response = await client.get(f"{PREFIX}/all", headers={"X-User-Id": "not-a-uuid"})

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_empty_group_list_is_404(client: AsyncClient, users: list[User]) -> None:
    response = await client.get(f"{PREFIX}/groups/all", headers=_as(users[0]))

    assert response.status_code == 404
    assert response.json()["detail"] == "No chat group found"


@pytest.mark.asyncio
async def test_groups_expose_public_identities_only(
    client: AsyncClient, db_session: AsyncSession, users: list[User]
) -> None:
    alice, bob = users[0], users[1]
    await GroupRepository().create_with_members(db_session, name="Team", member_ids=[alice.id, bob.id])
    await db_session.commit()

    response = await client.get(f"{PREFIX}/groups/all", headers=_as(alice))

    assert response.status_code == 200
    [group] = response.json()
    assert group["name"] == "Team"
    assert "createdAt" in group
    members = {m["username"]: m for m in group["members"]}
    assert set(members) == {"alice", "bob"}
    assert members["alice"]["fullName"] == "Alice"
    assert all("hashedPassword" not in m and "email" not in m for m in members.values())


@pytest.mark.asyncio
async def test_my_groups_only_lists_callers_groups(
    client: AsyncClient, db_session: AsyncSession, users: list[User]
) -> None:
    alice, bob, carol = users[0], users[1], users[2]
    repo = GroupRepository()
    await repo.create_with_members(db_session, name="with alice", member_ids=[alice.id, bob.id])
    await repo.create_with_members(db_session, name="without alice", member_ids=[bob.id, carol.id])
    await db_session.commit()

    response = await client.get(f"{PREFIX}/my-groups", headers=_as(alice))

    assert [g["name"] for g in response.json()] == ["with alice"]


@pytest.mark.asyncio
async def test_get_group(client: AsyncClient, db_session: AsyncSession, users: list[User]) -> None:
    alice = users[0]
    group = await GroupRepository().create_with_members(db_session, name="Solo", member_ids=[alice.id])
    await db_session.commit()

    found = await client.get(f"{PREFIX}/groups/{group.id}", headers=_as(alice))
    missing = await client.get(f"{PREFIX}/groups/{uuid4()}", headers=_as(alice))

    assert found.status_code == 200
    assert found.json()["id"] == str(group.id)
    assert missing.status_code == 404
    assert missing.json()["type"] == "chat-group-not-found"
    assert missing.json()["detail"] == "Chat group not found"


@pytest.mark.asyncio
async def test_conversation_between_caller_and_receiver(
    client: AsyncClient, db_session: AsyncSession, users: list[User]
) -> None:
    alice, bob, carol = users[0], users[1], users[2]
    await _direct(db_session, alice, bob, "hi bob")
    await _direct(db_session, bob, alice, "hi alice")
    await _direct(db_session, carol, bob, "hi from carol")

    response = await client.get(f"{PREFIX}/individual/{bob.id}", headers=_as(alice))

    assert response.status_code == 200
    messages = response.json()
    assert [m["message"] for m in messages] == ["hi alice", "hi bob"]
    assert messages[0]["sender"]["id"] == str(bob.id)
    assert messages[0]["isGroup"] is False
    assert isinstance(messages[0]["timestamp"], int)


@pytest.mark.asyncio
async def test_conversation_without_messages_is_404(client: AsyncClient, users: list[User]) -> None:
    response = await client.get(f"{PREFIX}/individual/{users[1].id}", headers=_as(users[0]))

    assert response.status_code == 404
    assert response.json()["detail"] == "No chat found between these users"


@pytest.mark.asyncio
async def test_history_limit(client: AsyncClient, db_session: AsyncSession, users: list[User]) -> None:
    alice, bob = users[0], users[1]
    for i in range(4):
        await _direct(db_session, alice, bob, f"m{i}")

    limited = await client.get(f"{PREFIX}/all", params={"limit": 2}, headers=_as(alice))
    default = await client.get(f"{PREFIX}/my-all-chats", headers=_as(bob))
    invalid = await client.get(f"{PREFIX}/all", params={"limit": 0}, headers=_as(alice))

    assert [m["message"] for m in limited.json()] == ["m3", "m2"]
    assert len(default.json()) == 4
    assert invalid.status_code == 422
    assert invalid.json()["type"] == "validation-error"


@pytest.mark.asyncio
async def test_group_chat_history(client: AsyncClient, db_session: AsyncSession, users: list[User]) -> None:
    alice, bob = users[0], users[1]
    group = await GroupRepository().create_with_members(db_session, name="G", member_ids=[alice.id, bob.id])
    await MessageRepository().create(
        db_session, ChatMessage(sender_id=alice.id, group_id=group.id, message="hello group", is_group=True)
    )
    await db_session.commit()

    response = await client.get(f"{PREFIX}/group-chat/{group.id}", headers=_as(bob))
    empty = await client.get(f"{PREFIX}/group-chat/{uuid4()}", headers=_as(bob))

    [message] = response.json()
    assert message["group"]["name"] == "G"
    assert message["receiver"] is None
    assert empty.status_code == 404
    assert empty.json()["detail"] == "No chat found for this group"


@pytest.mark.asyncio
async def test_stats_unavailable_without_registry(client: AsyncClient) -> None:
    response = await client.get(f"{PREFIX}/stats")

    assert response.status_code == 503


@pytest.mark.asyncio
async def test_stats_reports_registry_counts(client: AsyncClient, ws_settings) -> None:
    from chat_service.infra.realtime import start_connection_registry, stop_connection_registry
    from tests.utils import make_socket

    registry = await start_connection_registry(ws_settings)
    try:
        cid = await registry.bind(make_socket(), "user-1")
        await registry.subscribe(cid, "group-1")

        response = await client.get(f"{PREFIX}/stats")
    finally:
        await stop_connection_registry()

    assert response.status_code == 200
    assert response.json() == {"connections": 1, "channels": 2, "users": 1, "pending_actions": 0}


@pytest.mark.asyncio
async def test_metrics_endpoint(client: AsyncClient) -> None:
    response = await client.get("/metrics")

    assert response.status_code == 200
    assert "chat_actions_total" in response.text
