"""Declarative base and column mixins for the chat tables.

    class ChatMessage(Base, UUIDv7PKMixin):
        __tablename__ = "chat_messages"
        message: Mapped[str] = mapped_column(Text)
"""

from __future__ import annotations

import os
import time
import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, MetaData
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func

NAMING_CONVENTION = {
    "pk": "pk_%(table_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "ix": "ix_%(column_0_label)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def generate_uuid7() -> uuid.UUID:
    """Random UUID whose leading 48 bits are the current Unix time in ms.

    Ids minted later compare greater, which makes the primary key a stable
    tie-breaker for rows sharing a timestamp.
    """
    raw = bytearray(int(time.time() * 1000).to_bytes(6, "big") + os.urandom(10))
    raw[6] = (raw[6] & 0x0F) | 0x70
    raw[8] = (raw[8] & 0x3F) | 0x80
    return uuid.UUID(bytes=bytes(raw))


class UUIDPKMixin:
    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)


class UUIDv7PKMixin:
    """Time-ordered primary key, see ``generate_uuid7``."""

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid7)


class CreatedAtMixin:
    # Python-side default keeps SQLite timestamps timezone-aware
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
    )


class TimestampMixin(CreatedAtMixin):
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        onupdate=_utcnow,
    )
