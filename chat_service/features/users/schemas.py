"""Public identity projection of a user.

Every chat payload that mentions a user (message sender/receiver, group
members) embeds ``PublicIdentity``. Which fields are filled is decided by a
scope, a frozenset of permitted field names; fields outside the scope are
left empty. Credentials are never part of any scope.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from chat_service.features.users.models import User

# Fields any caller may see about another user
PUBLIC_FIELDS = frozenset({"id", "username", "full_name", "profile_image", "current_town"})

# Scope used by chat messages and groups
CHAT_SCOPE = PUBLIC_FIELDS


class PublicIdentity(BaseModel):
    """Restricted public view of a user."""

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: UUID
    username: str | None = None
    full_name: str | None = None
    profile_image: str | None = Field(default=None, description="Avatar URL")
    current_town: str | None = None


def project_identity(user: User | Any, scope: frozenset[str] = CHAT_SCOPE) -> PublicIdentity:
    """Project a user onto the fields ``scope`` permits.

    Args:
        user: ORM user or any object exposing the public attributes
        scope: Field names the consuming context is entitled to see

    Returns:
        PublicIdentity with out-of-scope fields left as None
    """
    permitted = (scope & PUBLIC_FIELDS) | {"id"}
    return PublicIdentity.model_validate(
        {name: getattr(user, name, None) for name in permitted}
    )


__all__ = ["CHAT_SCOPE", "PUBLIC_FIELDS", "PublicIdentity", "project_identity"]
