"""Unit tests for chatgate.core.message_store.MessageStore.

Runs against an in-memory SQLite database (``store`` fixture).  Covers:
- insert / get round trip and duplicate-id rejection
- history paging: newest first, ``before`` cursor, ``limit``
- the one-way publish transition and unknown identifiers
- channel registration, conflicts, deletion and ordering
- startup failure for an unreachable database
"""

from __future__ import annotations

from pathlib import Path

import pytest

from chatgate.core.exceptions import (
    ChannelConflictError,
    MessageNotFoundError,
    StartupError,
    StorageError,
)
from chatgate.core.ids import uuid7
from chatgate.core.message_store import MessageStore
from chatgate.core.schemas import ChatMessage


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _message(timestamp: int, content: str = "hello", **overrides) -> ChatMessage:
    values = {
        "id": uuid7(),
        "platform": "twitch",
        "channel": "alice",
        "username": "bob",
        "content": content,
        "timestamp": timestamp,
    }
    values.update(overrides)
    return ChatMessage(**values)


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


class TestInsert:
    async def test_insert_returns_stored_message(self, store: MessageStore) -> None:
        """insert() returns the row as stored, unpublished by default."""
        message = _message(100, additional_info='{"role":"vip"}')
        stored = await store.insert(message)

        assert stored == message
        assert stored.published is False

    async def test_inserted_message_can_be_read_back(self, store: MessageStore) -> None:
        message = await store.insert(_message(100))
        assert await store.get_message(message.id) == message

    async def test_duplicate_id_raises_storage_error(self, store: MessageStore) -> None:
        """A second insert with the same id fails and leaves the first row intact."""
        message = await store.insert(_message(100, content="first"))

        with pytest.raises(StorageError):
            await store.insert(_message(200, content="second", id=message.id))

        stored = await store.get_message(message.id)
        assert stored.content == "first"

    async def test_system_notice_is_stored_published(self, store: MessageStore) -> None:
        notice = await store.insert(ChatMessage.system_notice("Stream starts soon"))
        assert notice.published is True
        assert notice.platform == "system"


class TestListMessages:
    async def test_newest_first(self, store: MessageStore) -> None:
        for ts in (100, 300, 200):
            await store.insert(_message(ts, content=str(ts)))

        messages = await store.list_messages(limit=10)

        assert [m.timestamp for m in messages] == [300, 200, 100]

    async def test_before_cursor_and_limit(self, store: MessageStore) -> None:
        """before=250, limit=1 over timestamps 100/200/300 returns only the 200 message."""
        for ts in (100, 200, 300):
            await store.insert(_message(ts, content=str(ts)))

        messages = await store.list_messages(limit=1, before=250)

        assert len(messages) == 1
        assert messages[0].content == "200"

    async def test_before_is_strict(self, store: MessageStore) -> None:
        await store.insert(_message(200))
        assert await store.list_messages(limit=10, before=200) == []

    async def test_limit_below_one_returns_nothing(self, store: MessageStore) -> None:
        await store.insert(_message(100))
        assert await store.list_messages(limit=0) == []

    async def test_empty_store_returns_empty_list(self, store: MessageStore) -> None:
        assert await store.list_messages() == []

    async def test_equal_timestamps_ordered_by_id_descending(self, store: MessageStore) -> None:
        first = await store.insert(_message(100, content="first"))
        second = await store.insert(_message(100, content="second"))

        messages = await store.list_messages(limit=10)

        assert [m.id for m in messages] == [second.id, first.id]


class TestMarkPublished:
    async def test_first_call_changes_flag(self, store: MessageStore) -> None:
        message = await store.insert(_message(100))

        result = await store.mark_published(message.id)

        assert result.changed is True
        assert result.message.published is True
        assert result.message.id == message.id
        assert (await store.get_message(message.id)).published is True

    async def test_second_call_reports_unchanged(self, store: MessageStore) -> None:
        """Publishing is one-way and idempotent."""
        message = await store.insert(_message(100))
        await store.mark_published(message.id)

        result = await store.mark_published(message.id)

        assert result.changed is False
        assert result.message.published is True

    async def test_accepts_string_identifiers(self, store: MessageStore) -> None:
        message = await store.insert(_message(100))
        result = await store.mark_published(str(message.id))
        assert result.message.id == message.id

    async def test_unknown_id_raises_not_found(self, store: MessageStore) -> None:
        with pytest.raises(MessageNotFoundError):
            await store.mark_published(uuid7())

    async def test_malformed_id_raises_not_found(self, store: MessageStore) -> None:
        with pytest.raises(MessageNotFoundError):
            await store.mark_published("definitely-not-an-id")

    async def test_other_messages_are_untouched(self, store: MessageStore) -> None:
        target = await store.insert(_message(100))
        other = await store.insert(_message(200))

        await store.mark_published(target.id)

        assert (await store.get_message(other.id)).published is False


# ---------------------------------------------------------------------------
# Channels
# ---------------------------------------------------------------------------


class TestChannels:
    async def test_add_and_list(self, store: MessageStore) -> None:
        channel = await store.add_channel("alice", "twitch", listen=True)

        assert channel.name == "alice"
        assert channel.platform == "twitch"
        assert channel.listen is True
        assert await store.list_channels() == [channel]

    async def test_duplicate_channel_raises_conflict(self, store: MessageStore) -> None:
        await store.add_channel("alice", "twitch")

        with pytest.raises(ChannelConflictError):
            await store.add_channel("alice", "twitch", listen=True)

        channels = await store.list_channels()
        assert len(channels) == 1
        assert channels[0].listen is False

    async def test_same_name_on_other_platform_is_allowed(self, store: MessageStore) -> None:
        await store.add_channel("alice", "twitch")
        await store.add_channel("alice", "youtube")
        assert len(await store.list_channels()) == 2

    async def test_list_is_ordered_by_platform_then_name(self, store: MessageStore) -> None:
        await store.add_channel("zed", "youtube")
        await store.add_channel("bob", "twitch")
        await store.add_channel("alice", "youtube")

        channels = await store.list_channels()

        assert [(c.platform, c.name) for c in channels] == [
            ("twitch", "bob"),
            ("youtube", "alice"),
            ("youtube", "zed"),
        ]

    async def test_delete_existing_channel(self, store: MessageStore) -> None:
        await store.add_channel("alice", "twitch")
        assert await store.delete_channel("twitch", "alice") is True
        assert await store.list_channels() == []

    async def test_delete_missing_channel_returns_false(self, store: MessageStore) -> None:
        assert await store.delete_channel("twitch", "nobody") is False


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    async def test_ping_on_open_store(self, store: MessageStore) -> None:
        assert await store.ping() is True

    async def test_open_unreachable_database_raises_startup_error(self, tmp_path: Path) -> None:
        """A database file in a missing directory cannot be opened."""
        url = f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'chat.db'}"
        broken = MessageStore.from_url(url)
        try:
            with pytest.raises(StartupError):
                await broken.open()
        finally:
            await broken.close()

    async def test_file_database_persists_across_stores(self, tmp_path: Path) -> None:
        """Messages survive closing and reopening the same database file."""
        url = f"sqlite+aiosqlite:///{tmp_path / 'chat.db'}"
        first = MessageStore.from_url(url)
        await first.open()
        message = await first.insert(_message(100))
        await first.close()

        second = MessageStore.from_url(url)
        await second.open()
        try:
            assert await second.get_message(message.id) == message
        finally:
            await second.close()
