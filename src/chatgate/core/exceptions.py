"""Application-wide exception hierarchy for chatgate.

All custom exceptions subclass ``ChatGateError``, enabling consistent error
handling at the API boundary and structured logging in background tasks.

Hierarchy::

    ChatGateError
    ├── StartupError
    ├── RequestError
    ├── StorageError
    │   └── ChannelConflictError
    ├── MessageNotFoundError
    └── AdapterError
        └── UnknownPlatformError  (also a RequestError)
"""

from __future__ import annotations


class ChatGateError(Exception):
    """Base class for all chatgate exceptions.

    Callers can catch the entire hierarchy with a single ``except`` clause
    when needed.
    """


class StartupError(ChatGateError):
    """Raised when the message store cannot be opened or initialised.

    The process cannot serve anything without its store, so the lifespan
    lets this propagate and the server aborts.
    """


class RequestError(ChatGateError):
    """Raised for malformed or missing request parameters.

    No state is changed when this is raised.
    """


# ---------------------------------------------------------------------------
# Store exceptions
# ---------------------------------------------------------------------------


class StorageError(ChatGateError):
    """Raised when a store operation fails on I/O or a constraint.

    The transaction of the failed operation is rolled back, so none of its
    effects are visible afterwards.
    """


class ChannelConflictError(StorageError):
    """Raised when a channel with the same (platform, name) is already stored.

    Args:
        platform: Platform tag of the rejected channel.
        name: Channel name of the rejected channel.
    """

    def __init__(self, platform: str, name: str) -> None:
        super().__init__(f"Channel {name!r} on {platform!r} already exists")
        self.platform = platform
        self.name = name


class MessageNotFoundError(ChatGateError):
    """Raised when a message identifier does not match any stored message.

    Kept outside ``StorageError`` so callers can tell a bad identifier from
    a system failure.

    Args:
        message_id: The identifier as supplied by the caller.
    """

    def __init__(self, message_id: object) -> None:
        super().__init__(f"Message {message_id} not found")
        self.message_id = message_id


# ---------------------------------------------------------------------------
# Platform adapter exceptions
# ---------------------------------------------------------------------------


class AdapterError(ChatGateError):
    """Raised when a platform chat stream cannot be established or breaks.

    Args:
        message: Human-readable description of the failure.
        platform: Platform tag of the adapter (e.g. ``"twitch"``).
        channel: Channel the adapter was streaming, if known.
    """

    def __init__(
        self,
        message: str,
        platform: str | None = None,
        channel: str | None = None,
    ) -> None:
        super().__init__(message)
        self.platform = platform
        self.channel = channel


class UnknownPlatformError(AdapterError, RequestError):
    """Raised when a platform tag has no adapter (or is not a platform at all).

    Args:
        platform: The unrecognised tag as supplied by the caller.
    """

    def __init__(self, platform: str) -> None:
        super().__init__(f"Unknown platform: {platform}", platform=platform)
