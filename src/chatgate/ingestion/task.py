"""The ingestion loop of one listened channel.

:func:`run_ingestion` consumes a platform :class:`ChatStream`, turns every
message event into a stored :class:`ChatMessage` and forwards the stored row
to the admin feed.  Events are handled strictly in arrival order.

Cancellation is cooperative: the loop races every wait for the next event
against a :class:`CancellationToken` and checks the token again before each
store write.  A write that has already started always completes, so a
stopped listener never leaves a half-applied insert behind.
"""

from __future__ import annotations

import asyncio
from typing import Union, cast

import structlog

from chatgate.core.broadcast import BroadcastHub
from chatgate.core.exceptions import AdapterError, StorageError
from chatgate.core.message_store import MessageStore
from chatgate.core.metrics import ingestion_errors_total, messages_ingested_total
from chatgate.core.schemas import ChatMessage
from chatgate.platforms.base import ChatEvent, ChatStream, Platform

logger = structlog.get_logger(__name__)

_END_OF_STREAM = object()


class CancellationToken:
    """One-shot stop signal shared between a registry and its task."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


async def _next_event(stream: ChatStream) -> Union[ChatEvent, object]:
    try:
        return await stream.__anext__()
    except StopAsyncIteration:
        return _END_OF_STREAM


async def _next_or_cancelled(
    stream: ChatStream,
    token: CancellationToken,
) -> Union[ChatEvent, object, None]:
    """Wait for the next event unless the token fires first.

    Returns:
        The event, ``_END_OF_STREAM``, or ``None`` when cancelled.

    Raises:
        AdapterError: If the stream broke.
    """
    if token.is_cancelled:
        return None
    next_task = asyncio.ensure_future(_next_event(stream))
    cancel_task = asyncio.ensure_future(token.wait())
    try:
        await asyncio.wait({next_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        unfinished = [t for t in (next_task, cancel_task) if not t.done()]
        for pending in unfinished:
            pending.cancel()
        if unfinished:
            await asyncio.gather(*unfinished, return_exceptions=True)
    if next_task.cancelled():
        return None
    if token.is_cancelled:
        # Retrieve the outcome so a failed read is not reported as unhandled.
        next_task.exception()
        return None
    return next_task.result()


async def run_ingestion(
    platform: Platform,
    channel: str,
    stream: ChatStream,
    store: MessageStore,
    hub: BroadcastHub,
    token: CancellationToken,
) -> int:
    """Ingest *stream* until it ends, breaks or *token* is cancelled.

    Args:
        platform: Platform tag stored on every message.
        channel: Channel name stored on every message.
        stream: Open chat stream.  Always closed on exit.
        store: Message store receiving the inserts.
        hub: Broadcast hub; each stored message goes to its admin feed.
        token: Cooperative stop signal.

    Returns:
        The number of messages stored.
    """
    log = logger.bind(platform=platform.value, channel=channel)
    stored = 0
    log.info("ingestion_started")
    try:
        while True:
            try:
                event = await _next_or_cancelled(stream, token)
            except AdapterError as exc:
                log.warning("ingestion_stream_failed", error=str(exc))
                break
            if event is None:
                log.info("ingestion_cancelled")
                break
            if event is _END_OF_STREAM:
                log.info("ingestion_stream_ended")
                break
            event = cast(ChatEvent, event)
            if not event.is_message:
                continue
            if token.is_cancelled:
                log.info("ingestion_cancelled")
                break

            try:
                message = ChatMessage.new(
                    platform=platform.value,
                    channel=channel,
                    username=event.username,
                    content=event.content,
                    metadata=event.metadata,
                )
                message = await store.insert(message)
            except (StorageError, ValueError, TypeError) as exc:
                ingestion_errors_total.labels(platform=platform.value).inc()
                log.error("ingestion_event_failed", error=str(exc))
                continue

            hub.admin.publish(message)
            messages_ingested_total.labels(platform=platform.value).inc()
            stored += 1
            log.debug("message_ingested", message_id=str(message.id), username=message.username)
    finally:
        try:
            await stream.aclose()
        except (AdapterError, OSError) as exc:
            log.warning("stream_close_failed", error=str(exc))
        log.info("ingestion_stopped", stored=stored)
    return stored
