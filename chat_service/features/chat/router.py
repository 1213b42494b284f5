"""Chat history REST API.

Endpoints:
- GET /chat/groups/all: every group with member summaries
- GET /chat/my-groups: groups the caller belongs to
- GET /chat/groups/{group_id}: one group
- GET /chat/all: latest messages overall
- GET /chat/my-all-chats: latest messages the caller sent or received
- GET /chat/individual/{receiver_id}: latest messages between caller and receiver
- GET /chat/group-chat/{group_id}: latest messages of a group
- GET /chat/stats: live connection statistics
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from chat_service.core.dependencies import CurrentUserId, get_db_session
from chat_service.core.dependencies.realtime import OptionalDispatchEngine, RegistryDep
from chat_service.features.chat.schemas import ConnectionStats, GroupOut, MessageOut
from chat_service.features.chat.service import ChatHistoryService

router = APIRouter(prefix="/chat", tags=["chat"])

Limit = Annotated[
    int | None,
    Query(ge=1, description="Maximum messages to return; defaults to CHAT_HISTORY_LIMIT"),
]


def get_history_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> ChatHistoryService:
    return ChatHistoryService(session)


HistoryService = Annotated[ChatHistoryService, Depends(get_history_service)]


@router.get(
    "/groups/all",
    response_model=list[GroupOut],
    response_model_by_alias=True,
    summary="List all chat groups",
)
async def list_groups(_user_id: CurrentUserId, service: HistoryService) -> list[GroupOut]:
    return await service.list_groups()


@router.get(
    "/my-groups",
    response_model=list[GroupOut],
    response_model_by_alias=True,
    summary="List the caller's chat groups",
)
async def list_my_groups(user_id: CurrentUserId, service: HistoryService) -> list[GroupOut]:
    return await service.list_groups_for_user(user_id)


@router.get(
    "/groups/{group_id}",
    response_model=GroupOut,
    response_model_by_alias=True,
    summary="Get a chat group",
)
async def get_group(group_id: UUID, _user_id: CurrentUserId, service: HistoryService) -> GroupOut:
    """Get one group with its members.

    Raises:
        NotFoundException: If the group does not exist
    """
    return await service.get_group(group_id)


@router.get(
    "/all",
    response_model=list[MessageOut],
    response_model_by_alias=True,
    summary="Latest messages",
)
async def list_all_messages(_user_id: CurrentUserId, service: HistoryService, limit: Limit = None) -> list[MessageOut]:
    return await service.all_messages(limit)


@router.get(
    "/my-all-chats",
    response_model=list[MessageOut],
    response_model_by_alias=True,
    summary="Latest messages the caller sent or received",
)
async def list_my_messages(user_id: CurrentUserId, service: HistoryService, limit: Limit = None) -> list[MessageOut]:
    return await service.messages_for_user(user_id, limit)


@router.get(
    "/individual/{receiver_id}",
    response_model=list[MessageOut],
    response_model_by_alias=True,
    summary="Conversation between the caller and another user",
)
async def list_conversation(
    receiver_id: UUID,
    user_id: CurrentUserId,
    service: HistoryService,
    limit: Limit = None,
) -> list[MessageOut]:
    return await service.messages_between(user_id, receiver_id, limit)


@router.get(
    "/group-chat/{group_id}",
    response_model=list[MessageOut],
    response_model_by_alias=True,
    summary="Latest messages of a group",
)
async def list_group_messages(
    group_id: UUID,
    _user_id: CurrentUserId,
    service: HistoryService,
    limit: Limit = None,
) -> list[MessageOut]:
    return await service.group_messages(group_id, limit)


@router.get(
    "/stats",
    response_model=ConnectionStats,
    summary="Live connection statistics",
)
async def get_stats(registry: RegistryDep, engine: OptionalDispatchEngine) -> ConnectionStats:
    """Connection, channel and user counts of this process."""
    return ConnectionStats(
        connections=registry.connection_count,
        channels=registry.channel_count,
        users=registry.user_count,
        pending_actions=engine.pending if engine is not None else 0,
    )
