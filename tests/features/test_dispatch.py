"""Dispatch engine tests: persistence, fan-out and the action error boundary."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import patch
from uuid import UUID, uuid4

import pytest
from sqlalchemy.exc import OperationalError

from chat_service.core.settings import WebSocketSettings
from chat_service.features.chat.dispatch import DispatchEngine
from chat_service.features.chat.filters import AllMessages, MessagesInGroup
from chat_service.features.chat.repository import MessageRepository
from tests.utils import sent_frames

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from chat_service.features.users.models import User
    from chat_service.infra.realtime import ConnectionRegistry


async def _stored_messages(db_session: AsyncSession):
    db_session.expire_all()
    return await MessageRepository().list_recent(db_session, AllMessages(), limit=100)


@pytest.mark.asyncio
async def test_individual_message_persisted_then_published_to_both(
    dispatch_engine: DispatchEngine,
    connect,
    db_session: AsyncSession,
    users: list[User],
) -> None:
    alice, bob, carol = users[0], users[1], users[2]
    alice_ws, alice_cid = await connect(alice)
    bob_ws, _ = await connect(bob)
    carol_ws, _ = await connect(carol)

    await dispatch_engine.dispatch(
        alice_cid,
        alice.id,
        "individual",
        {"senderId": str(alice.id), "receiverId": str(bob.id), "message": "hi bob"},
    )

    stored = await _stored_messages(db_session)
    assert len(stored) == 1
    record = stored[0]
    assert (record.sender_id, record.receiver_id, record.is_group) == (alice.id, bob.id, False)

    for ws in (alice_ws, bob_ws):
        frames = sent_frames(ws, "individual")
        assert len(frames) == 1
        data = frames[0]["data"]
        assert data["id"] == str(record.id)
        assert data["sender"]["id"] == str(alice.id)
        assert data["receiver"]["id"] == str(bob.id)
        assert data["isGroup"] is False
        assert data["message"] == "hi bob"
        assert "hashedPassword" not in data["sender"]
        assert "email" not in data["receiver"]
    assert sent_frames(carol_ws, "individual") == []


@pytest.mark.asyncio
async def test_self_message_delivered_once(
    dispatch_engine: DispatchEngine, connect, users: list[User]
) -> None:
    alice = users[0]
    alice_ws, alice_cid = await connect(alice)

    await dispatch_engine.dispatch(
        alice_cid,
        alice.id,
        "individual",
        {"senderId": str(alice.id), "receiverId": str(alice.id), "message": "note to self"},
    )

    assert len(sent_frames(alice_ws, "individual")) == 1


@pytest.mark.asyncio
async def test_group_scenario_each_member_receives_once(
    dispatch_engine: DispatchEngine,
    connect,
    db_session: AsyncSession,
    users: list[User],
) -> None:
    u1, u2, outsider = users[0], users[1], users[3]
    u1_ws, u1_cid = await connect(u1)
    u2_ws, _ = await connect(u2)
    outsider_ws, _ = await connect(outsider)

    await dispatch_engine.dispatch(
        u1_cid, u1.id, "createGroup", {"groupName": "G", "memberIds": [str(u1.id), str(u2.id)]}
    )
    created = sent_frames(u1_ws, "groupCreated")
    assert len(created) == 1
    group_id = created[0]["data"]["id"]

    await dispatch_engine.dispatch(
        u1_cid, u1.id, "group", {"senderId": str(u1.id), "groupId": group_id, "message": "hi"}
    )

    for ws in (u1_ws, u2_ws):
        frames = sent_frames(ws, "group")
        assert len(frames) == 1
        data = frames[0]["data"]
        assert data["sender"]["id"] == str(u1.id)
        assert data["group"]["id"] == group_id
        assert data["group"]["name"] == "G"
        assert data["message"] == "hi"
        assert data["isGroup"] is True
        assert data["receiver"] is None
    assert sent_frames(outsider_ws, "group") == []

    db_session.expire_all()
    stored = await MessageRepository().list_recent(db_session, MessagesInGroup(UUID(group_id)))
    assert [m.message for m in stored] == ["hi"]


@pytest.mark.asyncio
async def test_member_with_two_devices_gets_group_message_on_both(
    dispatch_engine: DispatchEngine, connect, users: list[User]
) -> None:
    u1, u2 = users[0], users[1]
    _, u1_cid = await connect(u1)
    phone, _ = await connect(u2)
    laptop, _ = await connect(u2)

    await dispatch_engine.dispatch(
        u1_cid, u1.id, "createGroup", {"groupName": "G", "memberIds": [str(u1.id), str(u2.id)]}
    )
    group_id = sent_frames(phone, "groupCreated")[0]["data"]["id"]
    await dispatch_engine.dispatch(
        u1_cid, u1.id, "group", {"senderId": str(u1.id), "groupId": group_id, "message": "hi"}
    )

    assert len(sent_frames(phone, "group")) == 1
    assert len(sent_frames(laptop, "group")) == 1


@pytest.mark.asyncio
async def test_group_message_to_unknown_group_rejected(
    dispatch_engine: DispatchEngine,
    connect,
    db_session: AsyncSession,
    users: list[User],
) -> None:
    alice = users[0]
    alice_ws, alice_cid = await connect(alice)

    await dispatch_engine.dispatch(
        alice_cid, alice.id, "group", {"senderId": str(alice.id), "groupId": str(uuid4()), "message": "hi"}
    )

    assert list(await _stored_messages(db_session)) == []
    errors = sent_frames(alice_ws, "error")
    assert len(errors) == 1
    assert errors[0]["data"] == {
        "action": "group",
        "code": "chat-group-not-found",
        "message": "Chat group not found",
    }
    assert sent_frames(alice_ws, "group") == []


@pytest.mark.asyncio
async def test_validation_failure_persists_nothing_and_reports_once(
    dispatch_engine: DispatchEngine,
    connect,
    db_session: AsyncSession,
    users: list[User],
) -> None:
    alice, bob = users[0], users[1]
    alice_ws, alice_cid = await connect(alice)
    bob_ws, _ = await connect(bob)

    await dispatch_engine.dispatch(
        alice_cid, alice.id, "individual", {"senderId": str(alice.id), "receiverId": str(bob.id)}
    )

    assert list(await _stored_messages(db_session)) == []
    errors = sent_frames(alice_ws, "error")
    assert len(errors) == 1
    assert errors[0]["data"]["code"] == "validation-error"
    assert errors[0]["data"]["action"] == "individual"
    assert sent_frames(bob_ws) == []


@pytest.mark.asyncio
async def test_sender_must_match_connection_identity(
    dispatch_engine: DispatchEngine, connect, db_session: AsyncSession, users: list[User]
) -> None:
    alice, bob = users[0], users[1]
    alice_ws, alice_cid = await connect(alice)

    await dispatch_engine.dispatch(
        alice_cid, alice.id, "individual", {"senderId": str(bob.id), "receiverId": str(alice.id), "message": "x"}
    )

    assert list(await _stored_messages(db_session)) == []
    assert sent_frames(alice_ws, "error")[0]["data"]["code"] == "forbidden"


@pytest.mark.asyncio
async def test_unknown_receiver_rejected(
    dispatch_engine: DispatchEngine, connect, db_session: AsyncSession, users: list[User]
) -> None:
    alice = users[0]
    alice_ws, alice_cid = await connect(alice)

    await dispatch_engine.dispatch(
        alice_cid, alice.id, "individual", {"senderId": str(alice.id), "receiverId": str(uuid4()), "message": "x"}
    )

    assert list(await _stored_messages(db_session)) == []
    assert sent_frames(alice_ws, "error")[0]["data"]["code"] == "user-not-found"


@pytest.mark.asyncio
async def test_persistence_failure_reported_and_nothing_delivered(
    dispatch_engine: DispatchEngine, connect, users: list[User]
) -> None:
    alice, bob = users[0], users[1]
    alice_ws, alice_cid = await connect(alice)
    bob_ws, _ = await connect(bob)

    with patch.object(MessageRepository, "create", side_effect=OperationalError("INSERT", {}, Exception("disk full"))):
        await dispatch_engine.dispatch(
            alice_cid, alice.id, "individual", {"senderId": str(alice.id), "receiverId": str(bob.id), "message": "x"}
        )

    assert sent_frames(alice_ws, "error")[0]["data"]["code"] == "persistence-error"
    assert sent_frames(bob_ws) == []


@pytest.mark.asyncio
async def test_errors_only_logged_when_reporting_disabled(
    registry: ConnectionRegistry, session_factory, connect, users: list[User]
) -> None:
    engine = DispatchEngine(
        registry,
        session_factory,
        settings=WebSocketSettings(heartbeat_interval=0, emit_action_errors=False),
    )
    alice = users[0]
    alice_ws, alice_cid = await connect(alice)

    await engine.dispatch(alice_cid, alice.id, "group", {"senderId": str(alice.id)})

    assert sent_frames(alice_ws, "error") == []


@pytest.mark.asyncio
async def test_unknown_action_is_not_dispatched(dispatch_engine: DispatchEngine) -> None:
    with pytest.raises(KeyError):
        dispatch_engine.dispatch("cid", uuid4(), "deleteEverything", {})


@pytest.mark.asyncio
async def test_group_message_reaches_members_added_later(
    dispatch_engine: DispatchEngine, connect, users: list[User]
) -> None:
    u1, u2, u3 = users[0], users[1], users[2]
    _, u1_cid = await connect(u1)
    u3_ws, _ = await connect(u3)
    group_id = str(uuid4())
    await dispatch_engine.dispatch(u1_cid, u1.id, "addUsersToGroup", {"groupId": group_id, "memberIds": [str(u1.id), str(u2.id)]})
    await dispatch_engine.dispatch(u1_cid, u1.id, "addUsersToGroup", {"groupId": group_id, "memberIds": [str(u3.id)]})

    await dispatch_engine.dispatch(
        u1_cid, u1.id, "group", {"senderId": str(u1.id), "groupId": group_id, "message": "welcome"}
    )

    assert [f["data"]["message"] for f in sent_frames(u3_ws, "group")] == ["welcome"]


@pytest.mark.asyncio
async def test_drain_waits_for_pending_actions(
    dispatch_engine: DispatchEngine, connect, users: list[User]
) -> None:
    alice = users[0]
    alice_ws, alice_cid = await connect(alice)

    tasks = [dispatch_engine.dispatch(alice_cid, alice.id, "createGroup", {"groupName": ""}) for _ in range(3)]
    assert dispatch_engine.pending == 3

    await dispatch_engine.drain()

    assert dispatch_engine.pending == 0
    assert all(task.done() for task in tasks)
    assert len(sent_frames(alice_ws, "error")) == 3
