"""Abstract base classes for platform chat adapters.

Every supported streaming platform subclasses ``PlatformAdapter`` and
returns a ``ChatStream`` from :meth:`PlatformAdapter.open`.  The stream is a
lazy, possibly infinite async iterator of normalized :class:`ChatEvent`
objects; protocol parsing and any reconnection policy live entirely inside
the adapter.

Example usage::

    from chatgate.platforms.base import Platform, PlatformAdapter

    class MyAdapter(PlatformAdapter):
        platform = Platform.TWITCH

        async def open(self, channel: str) -> ChatStream: ...
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from chatgate.core.exceptions import UnknownPlatformError

if TYPE_CHECKING:
    from chatgate.config.settings import Settings

logger = logging.getLogger(__name__)


class Platform(str, Enum):
    """Platform tags used on stored messages and channels.

    Attributes:
        TWITCH: Twitch chat over anonymous IRC.
        YOUTUBE: YouTube live chat over the Data API v3.
        SYSTEM: Notices generated by chatgate itself.  Has no adapter.
    """

    TWITCH = "twitch"
    YOUTUBE = "youtube"
    SYSTEM = "system"

    @classmethod
    def parse(cls, value: str) -> Platform:
        """Map an API path segment to a platform.

        Raises:
            UnknownPlatformError: If *value* names no platform.
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise UnknownPlatformError(value) from None


class EventKind(str, Enum):
    """Kinds of normalized events.  Only ``MESSAGE`` is stored."""

    MESSAGE = "message"
    OTHER = "other"


@dataclass(frozen=True)
class ChatEvent:
    """One normalized event from a platform chat.

    Attributes:
        kind: ``EventKind.MESSAGE`` for chat messages, ``EventKind.OTHER``
            for everything else (joins, notices, super chats, ...).
        username: Display name of the author.
        content: Message text.
        metadata: Platform-specific extras serialized into
            ``additional_info``, or ``None``.
    """

    kind: EventKind = EventKind.MESSAGE
    username: str = ""
    content: str = ""
    metadata: Optional[dict[str, Any]] = field(default=None)

    @property
    def is_message(self) -> bool:
        return self.kind is EventKind.MESSAGE

    @classmethod
    def message(
        cls,
        username: str,
        content: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> ChatEvent:
        return cls(kind=EventKind.MESSAGE, username=username, content=content, metadata=metadata)

    @classmethod
    def other(cls, content: str = "") -> ChatEvent:
        return cls(kind=EventKind.OTHER, content=content)


class ChatStream(ABC):
    """Async iterator over one channel's chat events.

    ``__anext__`` raises ``StopAsyncIteration`` at end of stream and
    :class:`~chatgate.core.exceptions.AdapterError` when the stream breaks.
    :meth:`aclose` must be safe to call more than once.
    """

    def __aiter__(self) -> ChatStream:
        return self

    @abstractmethod
    async def __anext__(self) -> ChatEvent:
        """Return the next event."""

    @abstractmethod
    async def aclose(self) -> None:
        """Release the connection behind this stream."""


class PlatformAdapter(ABC):
    """Abstract base class for platform adapters.

    One adapter instance exists per platform for the lifetime of the
    application; it may hold shared clients that :meth:`aclose` releases.

    Class Attributes:
        platform: The :class:`Platform` this adapter serves.  Used as the
            registry key.

    Args:
        settings: Application settings.
    """

    platform: Platform

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def normalize_channel(self, channel: str) -> str:
        """Return the canonical spelling of *channel* on this platform.

        Two names that normalize to the same string address the same chat,
        so the result is what listeners are keyed and stored by.
        """
        return channel.strip()

    @abstractmethod
    async def open(self, channel: str) -> ChatStream:
        """Establish a chat stream for *channel*.

        Raises:
            AdapterError: If the stream cannot be established.
        """

    async def aclose(self) -> None:
        """Release shared resources.  The default does nothing."""
