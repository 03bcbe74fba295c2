"""Supervision of running ingestion tasks.

The :class:`ChannelRegistry` maps each (platform, channel) key to the
:class:`ListenerHandle` of its running task and guarantees that at most one
task runs per key.

Dead handles
------------
A task may finish on its own (the stream ended or broke).  Its handle then
counts as "not listening": the task's done-callback removes the entry, and
every registry operation prunes finished handles before it looks at the
mapping, so a stale entry is never reported and never blocks a new listen.

Starting
--------
The factory that connects the adapter runs outside the registry lock, bounded
by ``connect_timeout``.  While a key is connecting, further start requests for
the same key wait for that attempt and then report ``already_listening`` (or
re-raise its failure) instead of connecting a second time.  A stop request
for a connecting key is remembered; the task is cancelled as soon as the
connect returns and is never registered.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Optional

from chatgate.core.exceptions import AdapterError
from chatgate.core.metrics import active_listeners
from chatgate.ingestion.task import CancellationToken
from chatgate.platforms.base import Platform

logger = logging.getLogger(__name__)


class ListenerKey(NamedTuple):
    """Identity of a listener: one per (platform, channel) pair."""

    platform: Platform
    channel: str

    def __str__(self) -> str:
        return f"{self.platform.value}/{self.channel}"


class ListenerOutcome(str, Enum):
    """Result of a start or stop request."""

    STARTED = "started"
    ALREADY_LISTENING = "already_listening"
    STOPPED = "stopped"
    NOT_LISTENING = "not_listening"


@dataclass
class ListenerHandle:
    """Ownership of one running ingestion task.

    Attributes:
        key: The (platform, channel) the task ingests.
        task: The asyncio task running the ingestion loop.
        token: The task's cooperative stop signal.
    """

    key: ListenerKey
    task: asyncio.Task
    token: CancellationToken

    @property
    def is_running(self) -> bool:
        return not self.task.done()

    def cancel(self) -> None:
        """Ask the task to stop.  Does not wait for it."""
        self.token.cancel()


ListenerFactory = Callable[[], Awaitable[ListenerHandle]]


class ChannelRegistry:
    """At-most-one-listener-per-key supervisor.

    Args:
        connect_timeout: Seconds a factory may take before the start request
            fails with :class:`AdapterError`.  ``None`` disables the bound.
    """

    def __init__(self, connect_timeout: Optional[float] = None) -> None:
        self._connect_timeout = connect_timeout
        self._handles: dict[ListenerKey, ListenerHandle] = {}
        self._starting: dict[ListenerKey, asyncio.Future[None]] = {}
        self._stop_requested: set[ListenerKey] = set()
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _prune(self) -> None:
        for key, handle in list(self._handles.items()):
            if not handle.is_running:
                del self._handles[key]
                logger.info("listener %s had finished; entry pruned", key)
        active_listeners.set(len(self._handles))

    def _on_task_done(self, handle: ListenerHandle, task: asyncio.Task) -> None:
        if self._handles.get(handle.key) is handle:
            del self._handles[handle.key]
            active_listeners.set(len(self._handles))
        if task.cancelled():
            logger.info("listener %s task cancelled", handle.key)
            return
        exc = task.exception()
        if exc is not None:
            logger.error("listener %s task crashed", handle.key, exc_info=exc)
        else:
            logger.info("listener %s task finished", handle.key)

    async def _connect(self, factory: ListenerFactory) -> ListenerHandle:
        if self._connect_timeout is None:
            return await factory()
        try:
            return await asyncio.wait_for(factory(), timeout=self._connect_timeout)
        except asyncio.TimeoutError as exc:
            raise AdapterError(
                f"Timed out after {self._connect_timeout:g}s establishing the chat stream"
            ) from exc

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def start_listener(
        self,
        platform: Platform,
        channel: str,
        factory: ListenerFactory,
    ) -> ListenerOutcome:
        """Start a listener for (platform, channel) unless one is running.

        Args:
            platform: Platform of the channel.
            channel: Channel name.
            factory: Coroutine function that opens the stream and spawns the
                task.  Only called when no listener exists for the key.

        Returns:
            ``STARTED`` or ``ALREADY_LISTENING``; ``STOPPED`` when a stop
            request arrived while the stream was still connecting.

        Raises:
            AdapterError: If the factory fails or times out.  Nothing is
                registered in that case.
        """
        key = ListenerKey(platform, channel)
        async with self._lock:
            self._prune()
            if key in self._handles:
                return ListenerOutcome.ALREADY_LISTENING
            in_flight = self._starting.get(key)
            if in_flight is None:
                attempt: asyncio.Future[None] = asyncio.get_running_loop().create_future()
                self._starting[key] = attempt

        if in_flight is not None:
            await asyncio.shield(in_flight)
            # The attempt may have been stopped while connecting.
            return await self.start_listener(platform, channel, factory)

        try:
            handle = await self._connect(factory)
        except BaseException as exc:
            async with self._lock:
                del self._starting[key]
                self._stop_requested.discard(key)
            if not isinstance(exc, Exception):
                exc = AdapterError(f"Start of listener {key} was interrupted")
            attempt.set_exception(exc)
            # Mark retrieved; waiters still receive it.
            attempt.exception()
            raise

        async with self._lock:
            del self._starting[key]
            stopped = key in self._stop_requested
            self._stop_requested.discard(key)
            if not stopped:
                self._handles[key] = handle
                active_listeners.set(len(self._handles))
            handle.task.add_done_callback(lambda task: self._on_task_done(handle, task))
        attempt.set_result(None)
        if stopped:
            handle.cancel()
            logger.info("listener %s stopped while connecting", key)
            return ListenerOutcome.STOPPED
        logger.info("listener %s started", key)
        return ListenerOutcome.STARTED

    async def stop_listener(self, platform: Platform, channel: str) -> ListenerOutcome:
        """Signal the listener of (platform, channel) to stop.

        Returns immediately; the task unwinds on its own.

        Returns:
            ``STOPPED``, or ``NOT_LISTENING`` when nothing (alive) was
            registered for the key.  A key that is still connecting counts
            as listening: its task is cancelled as soon as it is spawned.
        """
        key = ListenerKey(platform, channel)
        async with self._lock:
            self._prune()
            handle = self._handles.pop(key, None)
            active_listeners.set(len(self._handles))
            if handle is None and key in self._starting:
                self._stop_requested.add(key)
                logger.info("listener %s stop requested while connecting", key)
                return ListenerOutcome.STOPPED
        if handle is None:
            return ListenerOutcome.NOT_LISTENING
        handle.cancel()
        logger.info("listener %s stop requested", key)
        return ListenerOutcome.STOPPED

    async def list_active(self) -> list[ListenerKey]:
        """Return the keys with a running task, sorted by platform and channel."""
        async with self._lock:
            self._prune()
            return sorted(self._handles, key=lambda k: (k.platform.value, k.channel))

    async def is_listening(self, platform: Platform, channel: str) -> bool:
        async with self._lock:
            self._prune()
            return ListenerKey(platform, channel) in self._handles

    async def stop_all(self) -> None:
        """Stop every listener and wait until all tasks have unwound."""
        async with self._lock:
            handles = list(self._handles.values())
            self._handles.clear()
            active_listeners.set(0)
        for handle in handles:
            handle.cancel()
        if handles:
            logger.info("stopping %d listener(s)", len(handles))
            await asyncio.gather(*(h.task for h in handles), return_exceptions=True)
