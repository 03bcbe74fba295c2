"""Chat message ORM model.

One row per chat message ever ingested (plus system notices).  The table is
append-mostly: rows are never deleted here and the only mutation is the
one-way ``published`` false → true flip made by the publish coordinator.

The primary key is a UUIDv7, so it doubles as a time-ordered cursor.
``timestamp`` is the ingestion time in Unix milliseconds and drives the
``before`` pagination of ``GET /api/messages``.
"""

from __future__ import annotations

import uuid
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from chatgate.core.models.base import Base


class ChatMessageRecord(Base):
    """A stored chat message from any platform.

    Columns:
        id: UUIDv7 primary key, time-ordered.
        platform: Platform tag (``twitch``, ``youtube``, ``system``).
        channel: Channel the message was posted in.
        username: Display name of the author.
        content: Message text.
        additional_info: Serialized JSON of platform-specific extras, or NULL.
        timestamp: Ingestion time in Unix milliseconds.
        published: Whether a moderator approved the message for the client feed.
    """

    __tablename__ = "messages"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True)
    platform: Mapped[str] = mapped_column(sa.String(32), nullable=False)
    channel: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    username: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    content: Mapped[str] = mapped_column(sa.Text, nullable=False)
    additional_info: Mapped[Optional[str]] = mapped_column(sa.Text, nullable=True)
    timestamp: Mapped[int] = mapped_column(sa.BigInteger, nullable=False)
    published: Mapped[bool] = mapped_column(
        sa.Boolean,
        nullable=False,
        default=False,
        server_default=sa.false(),
    )

    __table_args__ = (
        sa.Index("ix_messages_timestamp", "timestamp"),
    )

    def __repr__(self) -> str:
        return (
            f"<ChatMessageRecord id={self.id} platform={self.platform!r} "
            f"channel={self.channel!r} published={self.published}>"
        )
