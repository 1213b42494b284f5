"""Users as read by the chat core: model, public projection and lookups."""

from __future__ import annotations

from .models import User
from .repository import UserRepository, get_user_repository
from .schemas import CHAT_SCOPE, PublicIdentity, project_identity

__all__ = [
    "CHAT_SCOPE",
    "PublicIdentity",
    "User",
    "UserRepository",
    "get_user_repository",
    "project_identity",
]
