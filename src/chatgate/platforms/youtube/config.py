"""YouTube adapter constants.

The API base URL, key and minimum poll interval are settings (see
:class:`~chatgate.config.settings.Settings`); everything here is fixed by the
API itself.
"""

from __future__ import annotations

HTTP_TIMEOUT: float = 30.0
"""Timeout in seconds for each Data API request."""

LIVE_CHAT_MAX_RESULTS: int = 200
"""``maxResults`` for ``liveChat/messages`` (API maximum is 2000)."""

CHANNEL_ID_PREFIX: str = "UC"
CHANNEL_ID_LENGTH: int = 24
"""Channel ids look like ``UCxxxxxxxxxxxxxxxxxxxxxx`` (24 characters)."""

TEXT_MESSAGE_EVENT: str = "textMessageEvent"
"""``snippet.type`` of plain chat messages.  Other types (super chats,
memberships, deletions, ...) are not stored."""

UNKNOWN_AUTHOR: str = "unknown"
"""Username used when an item carries no author display name."""

CHAT_ENDED_REASONS: frozenset[str] = frozenset({"liveChatEnded", "liveChatNotFound", "liveChatDisabled"})
"""Error reasons meaning the broadcast's chat is over rather than broken."""
