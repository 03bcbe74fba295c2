"""Unit tests for chatgate.core.broadcast.

Covers subscription start semantics, per-subscriber ordering, the
drop-oldest policy for slow subscribers and feed shutdown.
"""

from __future__ import annotations

import asyncio

import pytest
from prometheus_client import REGISTRY

from chatgate.core.broadcast import BroadcastHub, Feed
from chatgate.core.schemas import ChatMessage


def _message(content: str) -> ChatMessage:
    return ChatMessage.new(platform="twitch", channel="alice", username="bob", content=content)


def _dropped_metric(feed: str) -> float:
    return REGISTRY.get_sample_value("chat_feed_dropped_total", {"feed": feed}) or 0.0


class TestSubscribe:
    async def test_subscriber_only_sees_later_messages(self) -> None:
        """Messages published before subscribe() are never delivered."""
        feed = Feed("admin", backlog=8)
        feed.publish(_message("early"))
        subscription = feed.subscribe()
        feed.publish(_message("late"))

        received = await asyncio.wait_for(subscription.get(), timeout=1)

        assert received is not None
        assert received.content == "late"
        assert subscription.pending == 0

    async def test_every_subscriber_gets_every_message_in_order(self) -> None:
        feed = Feed("client", backlog=8)
        first, second = feed.subscribe(), feed.subscribe()

        for index in range(3):
            assert feed.publish(_message(str(index))) == 2

        for subscription in (first, second):
            contents = [(await subscription.get()).content for _ in range(3)]
            assert contents == ["0", "1", "2"]

    async def test_publish_without_subscribers_is_fine(self) -> None:
        feed = Feed("client")
        assert feed.publish(_message("nobody listens")) == 0
        assert feed.published_total == 1

    async def test_get_waits_for_publish(self) -> None:
        feed = Feed("admin")
        subscription = feed.subscribe()
        waiter = asyncio.create_task(subscription.get())
        await asyncio.sleep(0)
        assert not waiter.done()

        feed.publish(_message("wake up"))

        received = await asyncio.wait_for(waiter, timeout=1)
        assert received.content == "wake up"

    def test_backlog_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            Feed("admin", backlog=0)


class TestDropOldest:
    async def test_full_buffer_drops_oldest(self) -> None:
        """A slow subscriber keeps the newest *backlog* messages and counts the rest."""
        feed = Feed("admin", backlog=3)
        subscription = feed.subscribe()
        before = _dropped_metric("admin")

        for index in range(5):
            feed.publish(_message(str(index)))

        assert subscription.dropped == 2
        assert feed.dropped_total == 2
        assert _dropped_metric("admin") - before == 2
        contents = [(await subscription.get()).content for _ in range(3)]
        assert contents == ["2", "3", "4"]

    async def test_slow_subscriber_does_not_affect_fast_one(self) -> None:
        feed = Feed("client", backlog=2)
        slow = feed.subscribe()
        fast = feed.subscribe()

        received = []
        for index in range(4):
            feed.publish(_message(str(index)))
            received.append((await fast.get()).content)

        assert received == ["0", "1", "2", "3"]
        assert fast.dropped == 0
        assert slow.dropped == 2


class TestClose:
    async def test_closed_subscription_ends_iteration(self) -> None:
        feed = Feed("admin")
        subscription = feed.subscribe()
        feed.publish(_message("last"))
        subscription.close()

        # Buffered messages are drained before iteration ends.
        contents = [message.content async for message in subscription]

        assert contents == ["last"]
        assert feed.subscriber_count == 0

    async def test_closed_subscription_receives_nothing_new(self) -> None:
        feed = Feed("admin")
        subscription = feed.subscribe()
        subscription.close()

        assert feed.publish(_message("ignored")) == 0
        assert await subscription.get() is None

    async def test_hub_close_wakes_pending_readers(self) -> None:
        hub = BroadcastHub.create(backlog=4)
        admin = hub.admin.subscribe()
        client = hub.client.subscribe()
        waiters = [asyncio.create_task(admin.get()), asyncio.create_task(client.get())]
        await asyncio.sleep(0)

        hub.close()

        assert await asyncio.wait_for(asyncio.gather(*waiters), timeout=1) == [None, None]

    async def test_context_manager_closes(self) -> None:
        feed = Feed("client")
        async with feed.subscribe() as subscription:
            assert feed.subscriber_count == 1
        assert subscription.closed
        assert feed.subscriber_count == 0


class TestHub:
    def test_feeds_are_independent(self) -> None:
        hub = BroadcastHub.create(backlog=4)
        admin = hub.admin.subscribe()
        client = hub.client.subscribe()

        hub.admin.publish(_message("admin only"))

        assert admin.pending == 1
        assert client.pending == 0
        assert hub.admin.name == "admin"
        assert hub.client.name == "client"
