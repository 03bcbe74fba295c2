"""Unit tests for chatgate.core.publisher.PublishCoordinator."""

from __future__ import annotations

import pytest

from chatgate.core.broadcast import BroadcastHub
from chatgate.core.exceptions import MessageNotFoundError
from chatgate.core.ids import uuid7
from chatgate.core.message_store import MessageStore
from chatgate.core.publisher import PublishCoordinator
from chatgate.core.schemas import ChatMessage


async def _pending(store: MessageStore, content: str = "hi") -> ChatMessage:
    return await store.insert(
        ChatMessage.new(platform="twitch", channel="alice", username="bob", content=content)
    )


class TestPublish:
    async def test_publish_emits_on_client_feed_only(
        self, store: MessageStore, hub: BroadcastHub
    ) -> None:
        """The re-read, published row reaches the client feed; the admin feed is untouched."""
        coordinator = PublishCoordinator(store, hub)
        message = await _pending(store)
        admin = hub.admin.subscribe()
        client = hub.client.subscribe()

        result = await coordinator.publish(message.id)

        assert result.already_published is False
        assert result.message.published is True
        assert client.pending == 1
        emitted = await client.get()
        assert emitted.id == message.id
        assert emitted.published is True
        assert admin.pending == 0

    async def test_republish_succeeds_without_second_emission(
        self, store: MessageStore, hub: BroadcastHub
    ) -> None:
        coordinator = PublishCoordinator(store, hub)
        message = await _pending(store)
        client = hub.client.subscribe()

        await coordinator.publish(message.id)
        again = await coordinator.publish(str(message.id))

        assert again.already_published is True
        assert again.message.published is True
        assert client.pending == 1, "a message must reach the client feed at most once"

    async def test_unknown_id_touches_no_feed(self, store: MessageStore, hub: BroadcastHub) -> None:
        coordinator = PublishCoordinator(store, hub)
        client = hub.client.subscribe()

        with pytest.raises(MessageNotFoundError):
            await coordinator.publish(uuid7())

        assert client.pending == 0


class TestAnnounce:
    async def test_announce_stores_and_emits_on_both_feeds(
        self, store: MessageStore, hub: BroadcastHub
    ) -> None:
        coordinator = PublishCoordinator(store, hub)
        admin = hub.admin.subscribe()
        client = hub.client.subscribe()

        notice = await coordinator.announce("Stream starts in 5 minutes")

        assert notice.platform == "system"
        assert notice.username == "system"
        assert notice.published is True
        assert (await admin.get()).id == notice.id
        assert (await client.get()).id == notice.id
        assert await store.get_message(notice.id) == notice

    async def test_announced_notice_cannot_be_published_again(
        self, store: MessageStore, hub: BroadcastHub
    ) -> None:
        coordinator = PublishCoordinator(store, hub)
        notice = await coordinator.announce("hello")
        client = hub.client.subscribe()

        result = await coordinator.publish(notice.id)

        assert result.already_published is True
        assert client.pending == 0
