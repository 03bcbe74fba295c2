"""Twitch chat adapter over anonymous IRC-over-WebSocket.

Login sequence (sent as soon as the socket opens)::

    CAP REQ :twitch.tv/tags twitch.tv/commands
    PASS SCHMOOPIIE
    NICK justinfan12345
    JOIN #channel

:meth:`TwitchAdapter.open` returns once the server confirms the JOIN, so a
listen request fails immediately for unreachable servers or rejected joins.
Afterwards :class:`TwitchChatStream` yields one :class:`ChatEvent` per IRC
line and answers ``PING`` keep-alives itself.
"""

from __future__ import annotations

import logging
import random
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Optional

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK, WebSocketException

from chatgate.core.exceptions import AdapterError
from chatgate.platforms.base import ChatEvent, ChatStream, Platform, PlatformAdapter
from chatgate.platforms.registry import register
from chatgate.platforms.twitch.config import (
    ANONYMOUS_NICK_PREFIX,
    ANONYMOUS_PASSWORD,
    CAPABILITIES,
    DEFAULT_ROLE,
    JOIN_CONFIRMATION_COMMANDS,
    JOIN_FAILURE_NOTICES,
    ROLE_PRECEDENCE,
)

logger = logging.getLogger(__name__)

_PLATFORM = Platform.TWITCH.value

_TAG_ESCAPES: dict[str, str] = {":": ";", "s": " ", "\\": "\\", "r": "\r", "n": "\n"}


# ---------------------------------------------------------------------------
# IRC parsing
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IrcMessage:
    """One parsed IRC line.

    Attributes:
        tags: IRCv3 message tags, unescaped.
        prefix: Source of the message (``nick!user@host`` or a server name).
        command: Upper-cased command or three-digit numeric.
        params: Middle parameters followed by the trailing parameter.
    """

    command: str
    params: list[str] = field(default_factory=list)
    prefix: str = ""
    tags: dict[str, str] = field(default_factory=dict)

    @property
    def trailing(self) -> str:
        return self.params[-1] if self.params else ""

    @property
    def login(self) -> str:
        """Login name from a ``nick!user@host`` prefix."""
        return self.prefix.split("!", 1)[0]


def _unescape_tag_value(value: str) -> str:
    if "\\" not in value:
        return value
    out: list[str] = []
    i = 0
    while i < len(value):
        char = value[i]
        if char == "\\":
            if i + 1 < len(value):
                out.append(_TAG_ESCAPES.get(value[i + 1], value[i + 1]))
            i += 2
            continue
        out.append(char)
        i += 1
    return "".join(out)


def parse_tags(raw: str) -> dict[str, str]:
    """Parse ``key=value;key2=value2`` into a dict with unescaped values."""
    tags: dict[str, str] = {}
    for item in raw.split(";"):
        if not item:
            continue
        key, _, value = item.partition("=")
        tags[key] = _unescape_tag_value(value)
    return tags


def parse_badges(raw: str) -> dict[str, str]:
    """Parse a ``badges``/``badge-info`` tag (``name/version,...``)."""
    badges: dict[str, str] = {}
    for item in raw.split(","):
        if not item:
            continue
        name, _, version = item.partition("/")
        badges[name] = version
    return badges


def parse_irc_line(line: str) -> IrcMessage:
    """Parse one raw IRC line (without the trailing CRLF)."""
    rest = line.rstrip("\r\n")
    tags: dict[str, str] = {}
    if rest.startswith("@"):
        raw_tags, _, rest = rest[1:].partition(" ")
        tags = parse_tags(raw_tags)
    prefix = ""
    if rest.startswith(":"):
        prefix, _, rest = rest[1:].partition(" ")
    trailing: Optional[str] = None
    if " :" in rest:
        rest, trailing = rest.split(" :", 1)
    parts = rest.split()
    command = parts[0].upper() if parts else ""
    params = parts[1:]
    if trailing is not None:
        params.append(trailing)
    return IrcMessage(command=command, params=params, prefix=prefix, tags=tags)


def role_from_badges(badges: dict[str, str]) -> str:
    """Return the highest-ranking role among *badges*, or ``viewer``."""
    for role in ROLE_PRECEDENCE:
        if role in badges:
            return role
    return DEFAULT_ROLE


def event_from_privmsg(message: IrcMessage) -> ChatEvent:
    """Normalize a tagged ``PRIVMSG`` into a message event.

    The event's ``username`` is the ``display-name`` tag, falling back to the
    login when Twitch sends an empty one.
    """
    tags = message.tags
    login = message.login
    badge_info = parse_badges(tags.get("badge-info", ""))
    sub_months = badge_info.get("subscriber") or badge_info.get("founder")

    content = message.trailing
    if content.startswith("\x01ACTION ") and content.endswith("\x01"):
        content = content[8:-1]

    metadata: dict[str, Any] = {
        "username": login,
        "id": tags.get("user-id"),
        "display_color": tags.get("color") or None,
        "sub_months": int(sub_months) if sub_months and sub_months.isdigit() else None,
        "role": role_from_badges(parse_badges(tags.get("badges", ""))),
        "returning_chatter": tags.get("returning-chatter") == "1",
    }
    return ChatEvent.message(tags.get("display-name") or login, content, metadata)


def _join_rejection(message: IrcMessage) -> Optional[str]:
    if message.command != "NOTICE":
        return None
    msg_id = message.tags.get("msg-id", "")
    for marker in JOIN_FAILURE_NOTICES:
        if marker == msg_id or marker in message.trailing:
            return message.trailing or msg_id
    return None


# ---------------------------------------------------------------------------
# Stream
# ---------------------------------------------------------------------------


class TwitchChatStream(ChatStream):
    """Chat events of one joined Twitch channel.

    Args:
        connection: An open websockets client connection.
        channel: Lower-cased channel login, without ``#``.
    """

    def __init__(self, connection: Any, channel: str) -> None:
        self._ws = connection
        self.channel = channel
        self._pending: deque[ChatEvent] = deque()
        self._ended = False
        self._closed = False

    async def _send(self, line: str) -> None:
        await self._ws.send(line)

    async def _receive(self) -> list[IrcMessage]:
        """Read one frame and return its parsed lines.  Answers PINGs."""
        try:
            raw = await self._ws.recv()
        except ConnectionClosedOK:
            self._ended = True
            return []
        except ConnectionClosed as exc:
            self._ended = True
            raise AdapterError(
                f"twitch: connection to #{self.channel} lost: {exc}",
                platform=_PLATFORM,
                channel=self.channel,
            ) from exc
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")

        messages: list[IrcMessage] = []
        for line in raw.split("\r\n"):
            if not line:
                continue
            message = parse_irc_line(line)
            if message.command == "PING":
                await self._send(f"PONG :{message.trailing}")
                continue
            messages.append(message)
        return messages

    def _queue(self, message: IrcMessage) -> None:
        if message.command == "PRIVMSG":
            self._pending.append(event_from_privmsg(message))
        elif message.command == "RECONNECT":
            logger.info("twitch: server requested reconnect for #%s; ending stream", self.channel)
            self._ended = True
        else:
            self._pending.append(ChatEvent.other(message.trailing))

    async def login(self, nick: str) -> None:
        """Send the handshake and wait until the JOIN is confirmed.

        Raises:
            AdapterError: If the server rejects the login or JOIN, or closes
                the connection first.
        """
        try:
            await self._send(f"CAP REQ :{CAPABILITIES}")
            await self._send(f"PASS {ANONYMOUS_PASSWORD}")
            await self._send(f"NICK {nick}")
            await self._send(f"JOIN #{self.channel}")
        except (ConnectionClosed, OSError) as exc:
            raise AdapterError(
                f"twitch: handshake failed for #{self.channel}: {exc}",
                platform=_PLATFORM,
                channel=self.channel,
            ) from exc

        while not self._ended:
            messages = await self._receive()
            for index, message in enumerate(messages):
                rejection = _join_rejection(message)
                if rejection is not None:
                    raise AdapterError(
                        f"twitch: join #{self.channel} rejected: {rejection}",
                        platform=_PLATFORM,
                        channel=self.channel,
                    )
                if message.command in JOIN_CONFIRMATION_COMMANDS:
                    logger.info("twitch: joined #%s as %s", self.channel, nick)
                    for later in messages[index + 1 :]:
                        self._queue(later)
                    return
                if message.command == "PRIVMSG":
                    self._queue(message)
        raise AdapterError(
            f"twitch: connection closed before #{self.channel} was joined",
            platform=_PLATFORM,
            channel=self.channel,
        )

    async def __anext__(self) -> ChatEvent:
        while not self._pending:
            if self._ended or self._closed:
                raise StopAsyncIteration
            for message in await self._receive():
                self._queue(message)
        return self._pending.popleft()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._ws.close()
        except (WebSocketException, OSError) as exc:
            logger.debug("twitch: error while closing #%s: %s", self.channel, exc)


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------


@register
class TwitchAdapter(PlatformAdapter):
    """Opens anonymous, read-only chat streams on Twitch."""

    platform = Platform.TWITCH

    def _nickname(self) -> str:
        if self.settings.twitch_nickname:
            return self.settings.twitch_nickname
        return f"{ANONYMOUS_NICK_PREFIX}{random.randint(10_000, 99_999)}"

    def normalize_channel(self, channel: str) -> str:
        """Twitch logins are case-insensitive; a leading ``#`` is IRC syntax."""
        return channel.strip().lstrip("#").lower()

    async def open(self, channel: str) -> TwitchChatStream:
        """Connect, log in anonymously and join ``#channel``.

        Raises:
            AdapterError: If the endpoint is unreachable or the JOIN fails.
        """
        name = self.normalize_channel(channel)
        if not name:
            raise AdapterError("twitch: channel name is empty", platform=_PLATFORM, channel=channel)
        url = self.settings.twitch_irc_url
        try:
            connection = await websockets.connect(url)
        except (OSError, TimeoutError, WebSocketException) as exc:
            raise AdapterError(
                f"twitch: cannot connect to {url}: {exc}",
                platform=_PLATFORM,
                channel=name,
            ) from exc

        stream = TwitchChatStream(connection, name)
        try:
            await stream.login(self._nickname())
        except BaseException:
            await stream.aclose()
            raise
        return stream
