"""SQLAlchemy models for chat messages and groups."""

from __future__ import annotations

import threading
import time
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from chat_service.core.database import Base, CreatedAtMixin, UUIDPKMixin, UUIDv7PKMixin
from chat_service.features.users.models import User


class MessageClock:
    """Process-wide millisecond clock that never repeats or goes backwards.

    Two messages stamped by the same process always get distinct,
    increasing timestamps even when the wall clock stalls or steps back.
    """

    def __init__(self) -> None:
        self._last = 0
        self._lock = threading.Lock()

    def now(self) -> int:
        with self._lock:
            self._last = max(time.time_ns() // 1_000_000, self._last + 1)
            return self._last


message_clock = MessageClock()


# Group membership as a set: the composite primary key rejects duplicates
chat_group_members = Table(
    "chat_group_members",
    Base.metadata,
    Column(
        "group_id",
        ForeignKey("chat_groups.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "user_id",
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "added_at",
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    ),
    Index("ix_chat_group_members_user_id", "user_id"),
)


class ChatGroup(Base, UUIDPKMixin, CreatedAtMixin):
    """A named set of users sharing a delivery channel.

    Groups are created explicitly or materialized with an empty name when an
    add-members action references an unknown id. They are never deleted here.
    """

    __tablename__ = "chat_groups"

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        default="",
        server_default="",
        comment="Display name; empty for groups materialized on reference",
    )

    members: Mapped[list[User]] = relationship(
        "User",
        secondary=chat_group_members,
        order_by="User.username",
        lazy="raise",
        viewonly=True,
    )

    def __repr__(self) -> str:
        return f"<ChatGroup(id={self.id}, name={self.name!r})>"


class ChatMessage(Base, UUIDv7PKMixin):
    """An immutable individual or group message.

    Exactly one of ``receiver_id`` and ``group_id`` is set, matching
    ``is_group``. ``timestamp`` is epoch milliseconds from ``message_clock``.
    """

    __tablename__ = "chat_messages"
    __table_args__ = (
        CheckConstraint(
            "(is_group AND group_id IS NOT NULL AND receiver_id IS NULL) OR "
            "(NOT is_group AND receiver_id IS NOT NULL AND group_id IS NULL)",
            name="single_audience",
        ),
        Index("ix_chat_messages_timestamp", "timestamp"),
        Index("ix_chat_messages_group_id_timestamp", "group_id", "timestamp"),
        Index("ix_chat_messages_sender_id_receiver_id", "sender_id", "receiver_id"),
    )

    sender_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    receiver_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id"), nullable=True, index=True
    )
    group_id: Mapped[UUID | None] = mapped_column(ForeignKey("chat_groups.id"), nullable=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    is_group: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    timestamp: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=lambda: message_clock.now(),
        comment="Creation time, epoch milliseconds",
    )

    # Loaded explicitly by the repository; accidental lazy loads raise
    sender: Mapped[User] = relationship("User", foreign_keys=[sender_id], lazy="raise")
    receiver: Mapped[User | None] = relationship(
        "User", foreign_keys=[receiver_id], lazy="raise"
    )
    group: Mapped[ChatGroup | None] = relationship("ChatGroup", lazy="raise")

    def __repr__(self) -> str:
        audience = f"group={self.group_id}" if self.is_group else f"receiver={self.receiver_id}"
        return f"<ChatMessage(id={self.id}, sender={self.sender_id}, {audience})>"
