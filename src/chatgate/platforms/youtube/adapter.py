"""YouTube live chat adapter over the Data API v3.

Opening a channel takes three lookups: resolve the channel id, find its
current live broadcast and read that broadcast's ``activeLiveChatId``.  The
first ``liveChat/messages`` page is fetched during :meth:`YouTubeAdapter.open`
to prove the chat is readable; its items are skipped, so a listener only
yields messages posted after it started.  :class:`YouTubeChatStream` then
polls at the interval the API asks for, but never faster than
``youtube_poll_interval``.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import TYPE_CHECKING, Any, Optional

import httpx

from chatgate.core.exceptions import AdapterError
from chatgate.platforms.base import ChatEvent, ChatStream, Platform, PlatformAdapter
from chatgate.platforms.registry import register
from chatgate.platforms.youtube._client import (
    YouTubeApiError,
    event_from_chat_item,
    fetch_chat_page,
    fetch_live_chat_id,
    find_live_video_id,
    resolve_channel_id,
)
from chatgate.platforms.youtube.config import CHAT_ENDED_REASONS, HTTP_TIMEOUT

if TYPE_CHECKING:
    from chatgate.config.settings import Settings

logger = logging.getLogger(__name__)


class YouTubeChatStream(ChatStream):
    """Polls one live chat and yields its items as events.

    Args:
        client: HTTP client owned by the adapter.
        base_url: Data API base URL.
        api_key: Data API key.
        live_chat_id: ``activeLiveChatId`` of the broadcast.
        channel: Channel name as requested, for logs and errors.
        page: The first ``liveChat/messages`` response; only its
            ``nextPageToken`` and ``pollingIntervalMillis`` are used.
        min_interval: Poll interval floor in seconds.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        api_key: str,
        live_chat_id: str,
        channel: str,
        page: dict[str, Any],
        min_interval: float,
    ) -> None:
        self._client = client
        self._base_url = base_url
        self._api_key = api_key
        self.live_chat_id = live_chat_id
        self.channel = channel
        self._min_interval = min_interval
        self._pending: deque[ChatEvent] = deque()
        self._page_token: Optional[str] = None
        self._delay = min_interval
        self._ended = False
        self._closed = False
        self._advance(page)

    def _advance(self, page: dict[str, Any]) -> None:
        self._page_token = page.get("nextPageToken") or self._page_token
        interval_ms = page.get("pollingIntervalMillis") or 0
        self._delay = max(interval_ms / 1000.0, self._min_interval)
        if page.get("offlineAt"):
            logger.info("youtube: broadcast of %s went offline", self.channel)
            self._ended = True

    async def __anext__(self) -> ChatEvent:
        while not self._pending:
            if self._ended or self._closed:
                raise StopAsyncIteration
            await asyncio.sleep(self._delay)
            try:
                page = await fetch_chat_page(
                    self._client,
                    self._base_url,
                    self._api_key,
                    self.live_chat_id,
                    self._page_token,
                    channel=self.channel,
                )
            except YouTubeApiError as exc:
                if exc.reason in CHAT_ENDED_REASONS:
                    logger.info("youtube: live chat of %s ended (%s)", self.channel, exc.reason)
                    self._ended = True
                    continue
                raise
            self._pending.extend(event_from_chat_item(item) for item in page.get("items", []))
            self._advance(page)
        return self._pending.popleft()

    async def aclose(self) -> None:
        self._closed = True


@register
class YouTubeAdapter(PlatformAdapter):
    """Opens polling live-chat streams on YouTube.

    Args:
        settings: Application settings (API key, base URL, poll floor).
        http_client: Optional injected :class:`httpx.AsyncClient` for testing.
            An injected client is not closed by :meth:`aclose`.
    """

    platform = Platform.YOUTUBE

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None) -> None:
        super().__init__(settings)
        self._http_client = http_client
        self._owns_client = http_client is None

    def _build_http_client(self) -> httpx.AsyncClient:
        """Return the shared client, creating it on first use."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=HTTP_TIMEOUT)
        return self._http_client

    async def open(self, channel: str) -> YouTubeChatStream:
        """Find *channel*'s live chat and start polling it.

        Raises:
            AdapterError: If no API key is configured, the channel is unknown
                or not live, or any API call fails (quota, auth, network).
        """
        name = self.normalize_channel(channel)
        api_key = self.settings.youtube_api_key
        if not api_key:
            raise AdapterError(
                "youtube: YOUTUBE_API_KEY is not configured",
                platform=self.platform.value,
                channel=name,
            )
        base_url = self.settings.youtube_api_base_url
        client = self._build_http_client()

        channel_id = await resolve_channel_id(client, base_url, api_key, name)
        video_id = await find_live_video_id(client, base_url, api_key, channel_id, channel=name)
        live_chat_id = await fetch_live_chat_id(client, base_url, api_key, video_id, channel=name)
        first_page = await fetch_chat_page(client, base_url, api_key, live_chat_id, None, channel=name)

        logger.info("youtube: streaming live chat of %s (video %s)", name, video_id)
        return YouTubeChatStream(
            client,
            base_url,
            api_key,
            live_chat_id,
            name,
            first_page,
            self.settings.youtube_poll_interval,
        )

    async def aclose(self) -> None:
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
        self._http_client = None
        self._owns_client = True
