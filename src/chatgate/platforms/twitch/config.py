"""Constants for the Twitch chat adapter.

The IRC endpoint itself is configurable through ``TWITCH_IRC_URL`` (see
:class:`~chatgate.config.settings.Settings`); everything here is protocol.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Handshake
# ---------------------------------------------------------------------------

CAPABILITIES: str = "twitch.tv/tags twitch.tv/commands"
"""IRCv3 capabilities requested before login.

``tags`` adds badges, colour and user id to every ``PRIVMSG``; ``commands``
enables ``NOTICE``/``RECONNECT`` delivery.
"""

ANONYMOUS_NICK_PREFIX: str = "justinfan"
"""Prefix of the read-only guest nicks Twitch accepts without a token."""

ANONYMOUS_PASSWORD: str = "SCHMOOPIIE"
"""Placeholder password sent with anonymous logins."""

# ---------------------------------------------------------------------------
# Join confirmation
# ---------------------------------------------------------------------------

JOIN_CONFIRMATION_COMMANDS: frozenset[str] = frozenset({"JOIN", "366", "ROOMSTATE"})
"""Server replies that prove the channel was joined."""

JOIN_FAILURE_NOTICES: tuple[str, ...] = (
    "msg_channel_suspended",
    "msg_banned",
    "Login authentication failed",
    "Improperly formatted auth",
)
"""``msg-id`` tags or NOTICE texts meaning the JOIN was rejected."""

# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------

ROLE_PRECEDENCE: tuple[str, ...] = ("broadcaster", "moderator", "vip", "subscriber")
"""Badge names mapped to a role, highest first.  No match means ``viewer``."""

DEFAULT_ROLE: str = "viewer"
