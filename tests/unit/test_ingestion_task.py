"""Unit tests for chatgate.ingestion.task.run_ingestion.

The stream is a :class:`tests.fakes.FakeStream`; the store is the in-memory
``store`` fixture unless a test needs a failing one.
"""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

from chatgate.core.broadcast import BroadcastHub
from chatgate.core.exceptions import AdapterError, StorageError
from chatgate.core.message_store import MessageStore
from chatgate.ingestion import CancellationToken, run_ingestion
from chatgate.platforms import ChatEvent, Platform
from tests.fakes import FakeStream, wait_for_condition


class TestRunIngestion:
    async def test_messages_are_stored_and_sent_to_admin_feed(
        self, store: MessageStore, hub: BroadcastHub
    ) -> None:
        """Each message event becomes one stored, unpublished row on the admin feed, in order."""
        stream = FakeStream("alice")
        admin = hub.admin.subscribe()
        client = hub.client.subscribe()
        stream.push(ChatEvent.message("Bob", "first"))
        stream.push(ChatEvent.message("Carol", "second"))
        stream.end()

        stored = await run_ingestion(
            Platform.TWITCH, "alice", stream, store, hub, CancellationToken()
        )

        assert stored == 2
        emitted = [await admin.get(), await admin.get()]
        assert [m.content for m in emitted] == ["first", "second"]
        assert all(m.platform == "twitch" and m.channel == "alice" for m in emitted)
        assert all(m.published is False for m in emitted)
        assert client.pending == 0
        history = await store.list_messages(limit=10)
        assert {m.id for m in history} == {m.id for m in emitted}
        assert stream.closed

    async def test_non_message_events_are_ignored(
        self, store: MessageStore, hub: BroadcastHub
    ) -> None:
        stream = FakeStream("alice")
        stream.push(ChatEvent.other("JOIN #alice"))
        stream.push(ChatEvent.message("Bob", "real"))
        stream.push(ChatEvent.other("ROOMSTATE"))
        stream.end()

        stored = await run_ingestion(
            Platform.TWITCH, "alice", stream, store, hub, CancellationToken()
        )

        assert stored == 1
        assert [m.content for m in await store.list_messages()] == ["real"]

    async def test_metadata_is_serialized(self, store: MessageStore, hub: BroadcastHub) -> None:
        stream = FakeStream("alice")
        stream.push(ChatEvent.message("Bob", "hi", {"role": "vip", "sub_months": 3}))
        stream.push(ChatEvent.message("Carol", "plain"))
        stream.end()

        await run_ingestion(Platform.TWITCH, "alice", stream, store, hub, CancellationToken())

        by_user = {m.username: m for m in await store.list_messages()}
        assert json.loads(by_user["Bob"].additional_info) == {"role": "vip", "sub_months": 3}
        assert by_user["Carol"].additional_info is None

    async def test_stream_failure_ends_task(self, store: MessageStore, hub: BroadcastHub) -> None:
        """An AdapterError from the stream stops the loop after the events before it."""
        stream = FakeStream("alice")
        stream.push(ChatEvent.message("Bob", "before"))
        stream.push(AdapterError("twitch: connection lost"))
        stream.push(ChatEvent.message("Bob", "never read"))

        stored = await run_ingestion(
            Platform.TWITCH, "alice", stream, store, hub, CancellationToken()
        )

        assert stored == 1
        assert stream.closed

    async def test_storage_failure_skips_event_and_continues(self, hub: BroadcastHub) -> None:
        calls = []

        async def flaky_insert(message):
            calls.append(message)
            if len(calls) == 1:
                raise StorageError("disk full")
            return message

        failing_store = MagicMock(spec=MessageStore)
        failing_store.insert = AsyncMock(side_effect=flaky_insert)
        admin = hub.admin.subscribe()
        stream = FakeStream("alice")
        stream.push(ChatEvent.message("Bob", "lost"))
        stream.push(ChatEvent.message("Bob", "kept"))
        stream.end()

        stored = await run_ingestion(
            Platform.TWITCH, "alice", stream, failing_store, hub, CancellationToken()
        )

        assert stored == 1
        assert failing_store.insert.await_count == 2
        assert admin.pending == 1
        assert (await admin.get()).content == "kept"


class TestCancellation:
    async def test_cancel_while_waiting_for_events(
        self, store: MessageStore, hub: BroadcastHub
    ) -> None:
        """A token cancelled while the stream is idle stops the task promptly."""
        stream = FakeStream("alice")
        token = CancellationToken()
        task = asyncio.create_task(
            run_ingestion(Platform.TWITCH, "alice", stream, store, hub, token)
        )
        stream.push(ChatEvent.message("Bob", "one"))
        await wait_for_condition(lambda: hub.admin.published_total == 1)

        token.cancel()

        assert await asyncio.wait_for(task, timeout=1) == 1
        assert stream.closed
        assert token.is_cancelled

    async def test_already_cancelled_token_reads_nothing(
        self, store: MessageStore, hub: BroadcastHub
    ) -> None:
        stream = FakeStream("alice")
        stream.push(ChatEvent.message("Bob", "ignored"))
        token = CancellationToken()
        token.cancel()

        stored = await run_ingestion(Platform.TWITCH, "alice", stream, store, hub, token)

        assert stored == 0
        assert await store.list_messages() == []
        assert stream.closed
