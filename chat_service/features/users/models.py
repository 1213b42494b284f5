"""User rows as seen by the chat core.

Users are owned by the accounts service; the chat core reads them to resolve
message participants and group members and never writes them outside tests
and fixtures.
"""

from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from chat_service.core.database import Base, TimestampMixin, UUIDPKMixin


class User(Base, UUIDPKMixin, TimestampMixin):
    """Platform user.

    ``email`` and ``hashed_password`` are credentials and never leave the
    process through chat payloads; see ``project_identity``.
    """

    __tablename__ = "users"

    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    profile_image: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
        comment="Public URL of the avatar",
    )
    current_town: Mapped[str | None] = mapped_column(String(200), nullable=True)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username={self.username!r})>"
