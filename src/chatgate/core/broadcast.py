"""In-process broadcast feeds for live chat delivery.

Two independent feeds make up the :class:`BroadcastHub`:

``admin``
    Every message written to the store, unfiltered, published right after
    the write succeeds.  Moderators watch this feed.
``client``
    Only messages that have just become ``published``.  Public viewers
    watch this feed.

Delivery policy
---------------
Each subscriber owns a bounded buffer of ``backlog`` unread messages.
:meth:`Feed.publish` never blocks: when a subscriber's buffer is full, its
*oldest* unread message is discarded to make room.  Every discarded message
is counted on the subscription (``dropped``), on the feed
(``dropped_total``) and in the ``chat_feed_dropped_total`` Prometheus
counter.  Within one feed, each subscriber sees messages in publish order.

A subscription only observes messages published after :meth:`Feed.subscribe`
returned.  History comes from the message store, not from the feed.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Optional

from chatgate.core.schemas import ChatMessage
from chatgate.core.metrics import feed_dropped_total

logger = logging.getLogger(__name__)

DEFAULT_BACKLOG = 1000


class Subscription:
    """Receive-only handle on a :class:`Feed`.

    Iterate it (``async for message in subscription``) or call :meth:`get`.
    Iteration ends once the subscription is closed and drained.
    """

    def __init__(self, feed: Feed, backlog: int) -> None:
        self._feed = feed
        self._buffer: deque[ChatMessage] = deque()
        self._backlog = backlog
        self._ready = asyncio.Event()
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Number of buffered, unread messages."""
        return len(self._buffer)

    def _deliver(self, message: ChatMessage) -> int:
        if self._closed:
            return 0
        lost = 0
        while len(self._buffer) >= self._backlog:
            self._buffer.popleft()
            lost += 1
        self._buffer.append(message)
        self.dropped += lost
        self._ready.set()
        return lost

    async def get(self) -> Optional[ChatMessage]:
        """Wait for the next message.

        Returns:
            The next message, or ``None`` once the subscription is closed and
            its buffer is drained.
        """
        while not self._buffer:
            if self._closed:
                return None
            self._ready.clear()
            await self._ready.wait()
        return self._buffer.popleft()

    def close(self) -> None:
        """Detach from the feed.  Pending readers wake up and finish."""
        if self._closed:
            return
        self._closed = True
        self._feed._detach(self)
        self._ready.set()

    def __aiter__(self) -> AsyncIterator[ChatMessage]:
        return self

    async def __anext__(self) -> ChatMessage:
        message = await self.get()
        if message is None:
            raise StopAsyncIteration
        return message

    async def __aenter__(self) -> Subscription:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()


class Feed:
    """Multi-producer, multi-consumer broadcast with a per-subscriber backlog.

    Args:
        name: Feed name used in logs and metrics (``"admin"``/``"client"``).
        backlog: Unread messages kept per subscriber before dropping the oldest.
    """

    def __init__(self, name: str, backlog: int = DEFAULT_BACKLOG) -> None:
        if backlog < 1:
            raise ValueError("backlog must be at least 1")
        self.name = name
        self.backlog = backlog
        self._subscribers: set[Subscription] = set()
        self.published_total = 0
        self.dropped_total = 0

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription:
        """Create a subscription that sees every message published from now on."""
        subscription = Subscription(self, self.backlog)
        self._subscribers.add(subscription)
        logger.debug("%s feed: subscriber added (%d total)", self.name, len(self._subscribers))
        return subscription

    def publish(self, message: ChatMessage) -> int:
        """Deliver *message* to every current subscriber without blocking.

        Returns:
            The number of subscribers the message was delivered to.
        """
        self.published_total += 1
        subscribers = list(self._subscribers)
        for subscription in subscribers:
            lost = subscription._deliver(message)
            if lost:
                self.dropped_total += lost
                feed_dropped_total.labels(feed=self.name).inc(lost)
                logger.warning(
                    "%s feed: slow subscriber lost %d message(s) (%d lost so far)",
                    self.name,
                    lost,
                    subscription.dropped,
                )
        return len(subscribers)

    def close(self) -> None:
        """Close every subscription, ending their iterators."""
        for subscription in list(self._subscribers):
            subscription.close()

    def _detach(self, subscription: Subscription) -> None:
        self._subscribers.discard(subscription)


@dataclass
class BroadcastHub:
    """The admin and client feeds, built with the same backlog."""

    admin: Feed
    client: Feed

    @classmethod
    def create(cls, backlog: int = DEFAULT_BACKLOG) -> BroadcastHub:
        return cls(admin=Feed("admin", backlog), client=Feed("client", backlog))

    def close(self) -> None:
        self.admin.close()
        self.client.close()
