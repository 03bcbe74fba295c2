"""Pydantic schemas for chat messages.

``ChatMessage`` is the one shape a message takes outside the database: it is
what the store returns, what both feeds carry and what the API and WebSocket
clients receive.  It is immutable so that a message fanned out to many
subscribers cannot be changed by one of them.
"""

from __future__ import annotations

import json
import uuid
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from chatgate.core.ids import now_ms, uuid7

SYSTEM = "system"


class ChatMessage(BaseModel):
    """A chat message as stored and broadcast.

    Attributes:
        id: UUIDv7 identifier, serialized as the canonical UUID string.
        platform: Platform tag (``twitch``, ``youtube``, ``system``).
        channel: Channel name the message was posted in.
        username: Display name of the author.
        content: Message text.
        additional_info: Serialized JSON of platform-specific extras, or null.
        timestamp: Ingestion time in Unix milliseconds.
        published: Whether the message has been approved for the client feed.
    """

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: uuid.UUID
    platform: str
    channel: str
    username: str
    content: str
    additional_info: Optional[str] = None
    timestamp: int
    published: bool = False

    @classmethod
    def new(
        cls,
        *,
        platform: str,
        channel: str,
        username: str,
        content: str,
        metadata: Optional[dict[str, Any]] = None,
        published: bool = False,
    ) -> ChatMessage:
        """Build a fresh message with a new identifier and the current timestamp."""
        return cls(
            id=uuid7(),
            platform=platform,
            channel=channel,
            username=username,
            content=content,
            additional_info=serialize_metadata(metadata),
            timestamp=now_ms(),
            published=published,
        )

    @classmethod
    def system_notice(cls, content: str) -> ChatMessage:
        """Build a pre-published notice authored by the system itself."""
        return cls.new(
            platform=SYSTEM,
            channel=SYSTEM,
            username=SYSTEM,
            content=content,
            published=True,
        )


class AnnouncementCreate(BaseModel):
    """Request body of ``POST /api/announce``."""

    content: str = Field(min_length=1, max_length=2000)


def serialize_metadata(metadata: Optional[dict[str, Any]]) -> Optional[str]:
    """Serialize platform extras for the ``additional_info`` column.

    ``None`` and empty dicts are stored as NULL.
    """
    if not metadata:
        return None
    return json.dumps(metadata, default=str, separators=(",", ":"))
