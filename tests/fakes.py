"""Test doubles shared across the suite.

Usage::

    from tests.fakes import FakeAdapter, make_settings, wait_for_condition
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path
from typing import Optional, Union

from chatgate.config.settings import Settings
from chatgate.platforms import ChatEvent, ChatStream, Platform, PlatformAdapter


class FakeStream(ChatStream):
    """Chat stream fed by the test.

    :meth:`push` is thread-safe so tests driving a ``TestClient`` from the
    main thread can feed a stream living on the app's event loop.
    """

    def __init__(self, channel: str) -> None:
        self.channel = channel
        self.closed = False
        self._loop = asyncio.get_running_loop()
        self._queue: asyncio.Queue[Union[ChatEvent, Exception, None]] = asyncio.Queue()

    def push(self, item: Union[ChatEvent, Exception, None]) -> None:
        """Queue an event, an exception to raise, or ``None`` to end the stream."""
        self._loop.call_soon_threadsafe(self._queue.put_nowait, item)

    def end(self) -> None:
        self.push(None)

    async def __anext__(self) -> ChatEvent:
        item = await self._queue.get()
        if item is None:
            raise StopAsyncIteration
        if isinstance(item, Exception):
            raise item
        return item

    async def aclose(self) -> None:
        self.closed = True


class FakeAdapter(PlatformAdapter):
    """Adapter whose streams are :class:`FakeStream` objects.

    Args:
        platform: Platform the adapter claims to serve.
        fail_with: Exception raised by every :meth:`open` call, if set.
        open_delay: Seconds each :meth:`open` call sleeps first.
    """

    def __init__(
        self,
        platform: Platform = Platform.TWITCH,
        fail_with: Optional[Exception] = None,
        open_delay: float = 0.0,
    ) -> None:
        super().__init__(Settings())
        self.platform = platform
        self.fail_with = fail_with
        self.open_delay = open_delay
        self.open_calls: list[str] = []
        self.streams: dict[str, FakeStream] = {}
        self.closed = False

    async def open(self, channel: str) -> FakeStream:
        self.open_calls.append(channel)
        if self.open_delay:
            await asyncio.sleep(self.open_delay)
        if self.fail_with is not None:
            raise self.fail_with
        stream = FakeStream(channel)
        self.streams[channel] = stream
        return stream

    async def aclose(self) -> None:
        self.closed = True


async def wait_for_condition(
    predicate: Callable[[], object],
    timeout: float = 2.0,
    interval: float = 0.01,
) -> None:
    """Poll *predicate* until it is truthy or fail after *timeout* seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met within timeout")
        await asyncio.sleep(interval)


def make_settings(tmp_path: Path, **overrides: object) -> Settings:
    """Build isolated settings; keyword arguments override single fields."""
    values: dict[str, object] = {
        "database_url": f"sqlite+aiosqlite:///{tmp_path / 'chat.db'}",
        "autostart_listeners": False,
        "static_dir": str(tmp_path / "no-static"),
        "feed_backlog": 16,
        "adapter_connect_timeout": 2.0,
        "youtube_api_key": None,
        "youtube_poll_interval": 0.01,
    }
    values.update(overrides)
    return Settings(**values)
