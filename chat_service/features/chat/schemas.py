"""Pydantic schemas for chat frames, messages and groups.

Wire payloads use camelCase keys (``senderId``, ``groupName``); Python code
uses snake_case attribute names. Inbound models accept either.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, TypeVar
from uuid import UUID

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)
from pydantic.alias_generators import to_camel

from chat_service.core.exceptions import ValidationException
from chat_service.core.settings import get_chat_settings
from chat_service.features.users.schemas import PublicIdentity, project_identity


class ClientEvent(str, Enum):
    """Events a client may send over the chat socket."""

    INDIVIDUAL = "individual"
    GROUP = "group"
    CREATE_GROUP = "createGroup"
    ADD_USERS_TO_GROUP = "addUsersToGroup"
    PING = "ping"
    PONG = "pong"


class ServerEvent(str, Enum):
    """Events the server sends over the chat socket."""

    CONNECTED = "connected"
    INDIVIDUAL = "individual"
    GROUP = "group"
    GROUP_CREATED = "groupCreated"
    USERS_ADDED_TO_GROUP = "usersAddedToGroup"
    PING = "ping"
    PONG = "pong"
    ERROR = "error"


class WireModel(BaseModel):
    """Base for camelCase payloads."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    def to_wire(self) -> dict[str, Any]:
        """JSON-safe dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


def server_frame(event: ServerEvent, data: dict[str, Any] | None = None) -> dict[str, Any]:
    """Build an outbound ``{"event": ..., "data": ...}`` frame."""
    return {"event": event.value, "data": data or {}}


# ──────────────────────────────────────────────────────────────
# Inbound frames
# ──────────────────────────────────────────────────────────────


class ClientFrame(BaseModel):
    """Envelope of every inbound frame."""

    event: str = Field(min_length=1, max_length=50)
    data: dict[str, Any] = Field(default_factory=dict)


def _clean_body(value: str) -> str:
    body = value.strip()
    if not body:
        msg = "message must not be empty"
        raise ValueError(msg)
    limit = get_chat_settings().max_message_length
    if len(body) > limit:
        msg = f"message exceeds {limit} characters"
        raise ValueError(msg)
    return body


def _unique_members(value: list[UUID]) -> list[UUID]:
    members = list(dict.fromkeys(value))
    limit = get_chat_settings().max_group_members
    if len(members) > limit:
        msg = f"at most {limit} members per action"
        raise ValueError(msg)
    return members


class IndividualMessageIn(WireModel):
    """Payload of an ``individual`` action."""

    sender_id: UUID
    receiver_id: UUID
    message: str

    @field_validator("message")
    @classmethod
    def clean_message(cls, v: str) -> str:
        return _clean_body(v)


class GroupMessageIn(WireModel):
    """Payload of a ``group`` action."""

    sender_id: UUID
    group_id: UUID
    message: str

    @field_validator("message")
    @classmethod
    def clean_message(cls, v: str) -> str:
        return _clean_body(v)


class CreateGroupIn(WireModel):
    """Payload of a ``createGroup`` action."""

    group_name: str = Field(
        validation_alias=AliasChoices("groupName", "group_name", "name"),
        min_length=1,
    )
    member_ids: list[UUID] = Field(
        validation_alias=AliasChoices("memberIds", "userIds", "member_ids", "users"),
        min_length=1,
    )

    @field_validator("group_name")
    @classmethod
    def clean_name(cls, v: str) -> str:
        name = v.strip()
        if not name:
            msg = "groupName must not be empty"
            raise ValueError(msg)
        if len(name) > get_chat_settings().max_group_name_length:
            msg = "groupName is too long"
            raise ValueError(msg)
        return name

    @field_validator("member_ids")
    @classmethod
    def dedupe_members(cls, v: list[UUID]) -> list[UUID]:
        return _unique_members(v)


class AddMembersIn(WireModel):
    """Payload of an ``addUsersToGroup`` action."""

    group_id: UUID = Field(validation_alias=AliasChoices("groupId", "group_id", "_id", "id"))
    member_ids: list[UUID] = Field(
        validation_alias=AliasChoices("memberIds", "userIds", "member_ids", "users"),
        min_length=1,
    )

    @field_validator("member_ids")
    @classmethod
    def dedupe_members(cls, v: list[UUID]) -> list[UUID]:
        return _unique_members(v)


# ──────────────────────────────────────────────────────────────
# Outbound records
# ──────────────────────────────────────────────────────────────


class GroupRef(WireModel):
    """Group summary embedded in messages."""

    id: UUID
    name: str
    created_at: datetime


class GroupOut(GroupRef):
    """Group with its members' public identities."""

    members: list[PublicIdentity] = Field(default_factory=list)

    @field_validator("members", mode="before")
    @classmethod
    def project_members(cls, v: Any) -> Any:
        return [
            user if isinstance(user, dict | PublicIdentity) else project_identity(user)
            for user in v
        ]


class MessageOut(WireModel):
    """A stored message as delivered to clients and history readers."""

    id: UUID
    sender: PublicIdentity
    receiver: PublicIdentity | None = None
    group: GroupRef | None = None
    message: str
    is_group: bool
    timestamp: int = Field(description="Creation time, epoch milliseconds")

    @field_validator("sender", "receiver", mode="before")
    @classmethod
    def project_participant(cls, v: Any) -> Any:
        if v is None or isinstance(v, dict | PublicIdentity):
            return v
        return project_identity(v)


class MembersAddedOut(WireModel):
    """Payload of ``usersAddedToGroup``."""

    group_id: UUID
    user_ids: list[UUID] = Field(description="Ids named in the action")
    members: list[UUID] = Field(description="Full member list after the union")


class ConnectedOut(WireModel):
    """Payload of ``connected``."""

    connection_id: str
    user_id: UUID
    channels: list[str]


class ActionErrorOut(WireModel):
    """Payload of ``error``."""

    action: str | None = None
    code: str
    message: str


class ConnectionStats(BaseModel):
    """Registry statistics."""

    connections: int
    channels: int
    users: int
    pending_actions: int


M = TypeVar("M", bound=BaseModel)


def parse_payload(model: type[M], data: dict[str, Any]) -> M:
    """Validate an action payload.

    Raises:
        ValidationException: With the pydantic errors in ``extra["errors"]``
    """
    try:
        return model.model_validate(data)
    except ValidationError as e:
        errors = e.errors(include_url=False, include_context=False, include_input=False)
        fields = ", ".join(".".join(str(p) for p in err["loc"]) or "payload" for err in errors)
        raise ValidationException(
            detail=f"Invalid {model.__name__} payload: {fields}",
            extra={"errors": errors},
        ) from e


__all__ = [
    "ActionErrorOut",
    "AddMembersIn",
    "ClientEvent",
    "ClientFrame",
    "ConnectedOut",
    "ConnectionStats",
    "CreateGroupIn",
    "GroupMessageIn",
    "GroupOut",
    "GroupRef",
    "IndividualMessageIn",
    "MembersAddedOut",
    "MessageOut",
    "ServerEvent",
    "WireModel",
    "parse_payload",
    "server_frame",
]
