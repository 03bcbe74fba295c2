"""Low-level HTTP client functions for the YouTube adapter.

Separates network I/O from the stream logic in :mod:`.adapter`.

Functions in this module are pure I/O helpers:
- :func:`make_api_request` - one Data API GET with error mapping.
- :func:`resolve_channel_id` - channel id from an id, ``@handle`` or name.
- :func:`find_live_video_id` - the channel's current live broadcast.
- :func:`fetch_live_chat_id` - ``activeLiveChatId`` of a broadcast.
- :func:`fetch_chat_page` - one ``liveChat/messages`` page.
- :func:`event_from_chat_item` - normalize one chat item.
- :func:`extract_error_reason` - extract ``reason`` from a YouTube error body.

All functions take an initialised :class:`httpx.AsyncClient`; callers own it.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from chatgate.core.exceptions import AdapterError
from chatgate.platforms.base import ChatEvent
from chatgate.platforms.youtube.config import (
    CHANNEL_ID_LENGTH,
    CHANNEL_ID_PREFIX,
    LIVE_CHAT_MAX_RESULTS,
    TEXT_MESSAGE_EVENT,
    UNKNOWN_AUTHOR,
)

logger = logging.getLogger(__name__)

_PLATFORM = "youtube"


class YouTubeApiError(AdapterError):
    """A Data API call failed.

    Args:
        message: Human-readable description.
        reason: The API's error ``reason`` (e.g. ``"quotaExceeded"``), or
            ``"unknown"``.
        status_code: HTTP status, or ``None`` for transport errors.
        channel: Channel being opened or streamed, if known.
    """

    def __init__(
        self,
        message: str,
        reason: str = "unknown",
        status_code: Optional[int] = None,
        channel: Optional[str] = None,
    ) -> None:
        super().__init__(message, platform=_PLATFORM, channel=channel)
        self.reason = reason
        self.status_code = status_code


def extract_error_reason(response: httpx.Response) -> str:
    """Extract the ``reason`` field from a YouTube API error response body.

    Returns:
        The ``reason`` string (e.g. ``"quotaExceeded"``), or ``"unknown"``
        if the body cannot be parsed.
    """
    try:
        body = response.json()
    except ValueError:
        return "unknown"
    if not isinstance(body, dict):
        return "unknown"
    errors = body.get("error", {}).get("errors", [])
    if errors:
        return errors[0].get("reason", "unknown")
    return "unknown"


async def make_api_request(
    client: httpx.AsyncClient,
    base_url: str,
    endpoint: str,
    params: dict[str, Any],
    channel: Optional[str] = None,
) -> dict[str, Any]:
    """Make a YouTube Data API v3 GET request with error handling.

    Args:
        client: Shared :class:`httpx.AsyncClient`.
        base_url: API base URL, without a trailing slash.
        endpoint: Endpoint path (e.g. ``"search"``, ``"liveChat/messages"``).
        params: Query parameters.  Must include ``key``.
        channel: Channel name used in error messages.

    Returns:
        Parsed JSON response dict.

    Raises:
        YouTubeApiError: On any non-2xx response or network error.  The
            ``reason`` distinguishes quota exhaustion, bad keys and ended
            chats.
    """
    url = f"{base_url.rstrip('/')}/{endpoint}"
    try:
        response = await client.get(url, params=params)
        response.raise_for_status()
        return response.json()
    except httpx.HTTPStatusError as exc:
        status_code = exc.response.status_code
        reason = extract_error_reason(exc.response)
        raise YouTubeApiError(
            f"youtube: HTTP {status_code} (reason={reason}) on endpoint '{endpoint}'",
            reason=reason,
            status_code=status_code,
            channel=channel,
        ) from exc
    except httpx.RequestError as exc:
        raise YouTubeApiError(
            f"youtube: connection error on endpoint '{endpoint}': {exc}",
            channel=channel,
        ) from exc


def _looks_like_channel_id(name: str) -> bool:
    return name.startswith(CHANNEL_ID_PREFIX) and len(name) == CHANNEL_ID_LENGTH


async def resolve_channel_id(
    client: httpx.AsyncClient,
    base_url: str,
    api_key: str,
    name: str,
) -> str:
    """Turn a channel id, ``@handle`` or free-text name into a channel id.

    Raises:
        AdapterError: If no channel matches.
        YouTubeApiError: On API failure.
    """
    if _looks_like_channel_id(name):
        return name

    if name.startswith("@"):
        data = await make_api_request(
            client,
            base_url,
            "channels",
            {"part": "id", "forHandle": name, "key": api_key},
            channel=name,
        )
        items = data.get("items", [])
        if items and items[0].get("id"):
            return items[0]["id"]
    else:
        data = await make_api_request(
            client,
            base_url,
            "search",
            {"part": "snippet", "type": "channel", "q": name, "maxResults": 1, "key": api_key},
            channel=name,
        )
        items = data.get("items", [])
        if items:
            channel_id = items[0].get("id", {}).get("channelId") or items[0].get("snippet", {}).get(
                "channelId"
            )
            if channel_id:
                return channel_id

    raise AdapterError(f"youtube: no channel matches '{name}'", platform=_PLATFORM, channel=name)


async def find_live_video_id(
    client: httpx.AsyncClient,
    base_url: str,
    api_key: str,
    channel_id: str,
    channel: Optional[str] = None,
) -> str:
    """Return the video id of the channel's latest live broadcast.

    Raises:
        AdapterError: If the channel is not live.
        YouTubeApiError: On API failure.
    """
    data = await make_api_request(
        client,
        base_url,
        "search",
        {
            "part": "id",
            "channelId": channel_id,
            "eventType": "live",
            "type": "video",
            "order": "date",
            "maxResults": 1,
            "key": api_key,
        },
        channel=channel,
    )
    for item in data.get("items", []):
        video_id = item.get("id", {}).get("videoId")
        if video_id:
            return video_id
    raise AdapterError(
        f"youtube: channel {channel_id} has no live broadcast",
        platform=_PLATFORM,
        channel=channel,
    )


async def fetch_live_chat_id(
    client: httpx.AsyncClient,
    base_url: str,
    api_key: str,
    video_id: str,
    channel: Optional[str] = None,
) -> str:
    """Return the ``activeLiveChatId`` of *video_id*.

    Raises:
        AdapterError: If the broadcast has no active chat.
        YouTubeApiError: On API failure.
    """
    data = await make_api_request(
        client,
        base_url,
        "videos",
        {"part": "liveStreamingDetails", "id": video_id, "key": api_key},
        channel=channel,
    )
    items = data.get("items", [])
    if items:
        chat_id = items[0].get("liveStreamingDetails", {}).get("activeLiveChatId")
        if chat_id:
            return chat_id
    raise AdapterError(
        f"youtube: broadcast {video_id} has no active live chat",
        platform=_PLATFORM,
        channel=channel,
    )


async def fetch_chat_page(
    client: httpx.AsyncClient,
    base_url: str,
    api_key: str,
    live_chat_id: str,
    page_token: Optional[str],
    channel: Optional[str] = None,
) -> dict[str, Any]:
    """Fetch one page of ``liveChat/messages``.

    Returns:
        The raw response with ``items``, ``nextPageToken`` and
        ``pollingIntervalMillis`` (and ``offlineAt`` once the stream ended).
    """
    params: dict[str, Any] = {
        "liveChatId": live_chat_id,
        "part": "snippet,authorDetails",
        "maxResults": LIVE_CHAT_MAX_RESULTS,
        "key": api_key,
    }
    if page_token:
        params["pageToken"] = page_token
    return await make_api_request(client, base_url, "liveChat/messages", params, channel=channel)


def event_from_chat_item(item: dict[str, Any]) -> ChatEvent:
    """Normalize one ``liveChatMessage`` resource.

    Text messages become message events with no metadata; every other item
    type becomes a non-message event.
    """
    snippet = item.get("snippet") or {}
    if snippet.get("type") != TEXT_MESSAGE_EVENT:
        return ChatEvent.other(snippet.get("displayMessage") or "")
    author = item.get("authorDetails") or {}
    content = (snippet.get("textMessageDetails") or {}).get("messageText")
    if content is None:
        content = snippet.get("displayMessage") or ""
    return ChatEvent.message(author.get("displayName") or UNKNOWN_AUTHOR, content)
