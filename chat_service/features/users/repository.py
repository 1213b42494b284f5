"""Read-only user lookups used to validate chat participants."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select

from chat_service.core.database import BaseRepository
from chat_service.features.users.models import User

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession


class UserRepository(BaseRepository[User]):
    """Repository for user lookups."""

    async def missing_ids(self, session: AsyncSession, user_ids: Iterable[UUID]) -> set[UUID]:
        """Return the ids in ``user_ids`` that have no user row."""
        wanted = set(user_ids)
        if not wanted:
            return set()

        stmt = select(User.id).where(User.id.in_(wanted))
        result = await session.execute(stmt)
        missing = wanted - set(result.scalars().all())

        self._lazy.debug(lambda: f"users.missing_ids({len(wanted)}) -> {len(missing)} missing")
        return missing


_user_repository: UserRepository | None = None


def get_user_repository() -> UserRepository:
    """Get UserRepository instance.

    Usage in FastAPI routes:
        from chat_service.features.users.repository import (
            UserRepository,
            get_user_repository,
        )

        @router.get("/users/{user_id}/exists")
        async def user_exists(
            user_id: UUID,
            session: AsyncSession = Depends(get_db_session),
            repo: UserRepository = Depends(get_user_repository),
        ):
            missing = await repo.missing_ids(session, [user_id])
            return {"exists": not missing}
    """
    global _user_repository
    if _user_repository is None:
        _user_repository = UserRepository(User)
    return _user_repository
