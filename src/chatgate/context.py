"""Application context: every long-lived component in one object.

The FastAPI lifespan builds one :class:`AppContext` and stores it on
``app.state.context``; route handlers receive it through
:func:`chatgate.api.dependencies.get_context`.  No runtime state lives in
module-level globals.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from chatgate.config.settings import Settings
from chatgate.core.broadcast import BroadcastHub
from chatgate.core.exceptions import AdapterError, ChatGateError, RequestError, UnknownPlatformError
from chatgate.core.message_store import MessageStore
from chatgate.core.metrics import websocket_connections
from chatgate.core.publisher import PublishCoordinator
from chatgate.core.schemas import Channel, ChatMessage
from chatgate.ingestion import (
    CancellationToken,
    ChannelRegistry,
    ListenerFactory,
    ListenerHandle,
    ListenerKey,
    ListenerOutcome,
    run_ingestion,
)
from chatgate.platforms import Platform, PlatformAdapter, build_adapters

logger = logging.getLogger(__name__)


@dataclass
class ConnectionCounter:
    """Open WebSocket connections per feed."""

    per_feed: dict[str, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.per_feed.values())

    def opened(self, feed: str) -> int:
        self.per_feed[feed] = self.per_feed.get(feed, 0) + 1
        websocket_connections.labels(feed=feed).inc()
        return self.total

    def closed(self, feed: str) -> int:
        self.per_feed[feed] = max(self.per_feed.get(feed, 0) - 1, 0)
        websocket_connections.labels(feed=feed).dec()
        return self.total


@dataclass
class AppContext:
    """Shared handles to the store, feeds, registry, coordinator and adapters.

    Attributes:
        settings: Application settings.
        store: The message store.
        hub: Admin and client feeds.
        registry: Running ingestion tasks.
        publisher: The pending → published coordinator.
        adapters: One adapter per supported platform.
        connections: Open WebSocket connection counts.
    """

    settings: Settings
    store: MessageStore
    hub: BroadcastHub
    registry: ChannelRegistry
    publisher: PublishCoordinator
    adapters: dict[Platform, PlatformAdapter]
    connections: ConnectionCounter = field(default_factory=ConnectionCounter)

    @classmethod
    async def create(
        cls,
        settings: Settings,
        store: Optional[MessageStore] = None,
        adapters: Optional[dict[Platform, PlatformAdapter]] = None,
    ) -> AppContext:
        """Open the store and build every component.

        Args:
            settings: Application settings.
            store: Optional pre-built store (tests); built from
                ``settings.database_url`` otherwise.
            adapters: Optional adapter table (tests); one instance per
                registered adapter otherwise.

        Raises:
            StartupError: If the store cannot be opened.
        """
        if store is None:
            store = MessageStore.from_url(settings.database_url)
        await store.open()
        hub = BroadcastHub.create(settings.feed_backlog)
        return cls(
            settings=settings,
            store=store,
            hub=hub,
            registry=ChannelRegistry(connect_timeout=settings.adapter_connect_timeout),
            publisher=PublishCoordinator(store, hub),
            adapters=adapters if adapters is not None else build_adapters(settings),
        )

    # ------------------------------------------------------------------
    # Messages and channels
    # ------------------------------------------------------------------

    async def list_messages(
        self,
        limit: Optional[int] = None,
        before: Optional[int] = None,
    ) -> list[ChatMessage]:
        """Page through history with *limit* clamped to ``[1, max_page_size]``."""
        if limit is None:
            limit = self.settings.default_page_size
        limit = max(1, min(limit, self.settings.max_page_size))
        return await self.store.list_messages(limit=limit, before=before)

    async def add_channel(self, platform: str, name: str, listen: bool = False) -> Channel:
        """Register a channel on a platform that has an adapter.

        Raises:
            UnknownPlatformError: If *platform* has no adapter.
            RequestError: If *name* is blank.
            ChannelConflictError: If the channel is already registered.
        """
        parsed = Platform.parse(platform)
        name = self.adapter_for(parsed).normalize_channel(name)
        if not name:
            raise RequestError("Channel name is required")
        return await self.store.add_channel(name, parsed.value, listen=listen)

    async def remove_channel(self, platform: str, name: str) -> bool:
        """Delete a channel.  A running listener keeps running."""
        tag = platform.strip().lower()
        try:
            name = self.channel_key(Platform.parse(tag), name)
        except UnknownPlatformError:
            name = name.strip()
        return await self.store.delete_channel(tag, name)

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def adapter_for(self, platform: Platform) -> PlatformAdapter:
        """Return the adapter serving *platform*.

        Raises:
            UnknownPlatformError: If no adapter serves it (e.g. ``system``).
        """
        try:
            return self.adapters[platform]
        except KeyError:
            raise UnknownPlatformError(platform.value) from None

    def channel_key(self, platform: Platform, channel: str) -> str:
        """Normalize *channel* the way *platform*'s adapter does, if it has one."""
        adapter = self.adapters.get(platform)
        if adapter is None:
            return channel.strip()
        return adapter.normalize_channel(channel)

    def listener_factory(self, platform: Platform, channel: str) -> ListenerFactory:
        """Build the factory that opens *channel* and spawns its ingestion task."""
        adapter = self.adapter_for(platform)

        async def factory() -> ListenerHandle:
            stream = await adapter.open(channel)
            token = CancellationToken()
            task = asyncio.create_task(
                run_ingestion(platform, channel, stream, self.store, self.hub, token),
                name=f"ingest:{platform.value}/{channel}",
            )
            return ListenerHandle(key=ListenerKey(platform, channel), task=task, token=token)

        return factory

    async def start_listener(self, platform: Platform, channel: str) -> ListenerOutcome:
        """Start ingesting (platform, channel).

        Raises:
            UnknownPlatformError: If *platform* has no adapter.
            AdapterError: If the stream cannot be established.
        """
        channel = self.adapter_for(platform).normalize_channel(channel)
        factory = self.listener_factory(platform, channel)
        return await self.registry.start_listener(platform, channel, factory)

    async def stop_listener(self, platform: Platform, channel: str) -> ListenerOutcome:
        return await self.registry.stop_listener(platform, self.channel_key(platform, channel))

    async def autostart(self) -> int:
        """Start every stored channel flagged ``listen``.

        Failures are logged per channel and never abort startup.

        Returns:
            The number of listeners started.
        """
        started = 0
        for channel in await self.store.list_channels():
            if not channel.listen:
                continue
            try:
                platform = Platform.parse(channel.platform)
                outcome = await self.start_listener(platform, channel.name)
            except UnknownPlatformError:
                logger.warning("skipping channel %s: unknown platform %r", channel.name, channel.platform)
                continue
            except AdapterError as exc:
                logger.warning("cannot start listener for %s/%s: %s", channel.platform, channel.name, exc)
                continue
            if outcome is ListenerOutcome.STARTED:
                started += 1
        logger.info("autostarted %d listener(s)", started)
        return started

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        """Stop every listener, close feeds and adapters, dispose the store."""
        await self.registry.stop_all()
        self.hub.close()
        for adapter in self.adapters.values():
            try:
                await adapter.aclose()
            except (ChatGateError, OSError) as exc:
                logger.warning("error closing %s adapter: %s", adapter.platform.value, exc)
        await self.store.close()
