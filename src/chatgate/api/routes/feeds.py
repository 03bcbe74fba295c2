"""WebSocket routes streaming the two feeds.

Routes:
    WS /ws        - client feed: published messages only
    WS /admin/ws  - admin feed: every stored message, plus admin commands

Each connection subscribes to its feed *before* accepting, so nothing
published after the handshake is missed.  A writer task forwards feed
messages as JSON text frames while a reader task consumes inbound frames;
when either finishes (client disconnect, send failure, feed closed) the
other is cancelled and the subscription released.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from fastapi import APIRouter, WebSocket
from starlette.websockets import WebSocketDisconnect, WebSocketState

from chatgate.api.admin_commands import handle_admin_frame
from chatgate.api.dependencies import WsContext
from chatgate.context import AppContext
from chatgate.core.broadcast import Feed, Subscription

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["feeds"])

Sender = Callable[[dict[str, Any]], Awaitable[None]]
FrameHandler = Callable[[Sender, str], Awaitable[None]]


async def _write_feed(send: Sender, subscription: Subscription) -> None:
    async for message in subscription:
        await send(message.model_dump(mode="json"))


async def _read_frames(websocket: WebSocket, on_frame: Callable[[str], Awaitable[None]]) -> None:
    while True:
        event = await websocket.receive()
        if event["type"] == "websocket.disconnect":
            return
        text = event.get("text")
        if text is None and event.get("bytes") is not None:
            text = event["bytes"].decode("utf-8", errors="replace")
        if text is not None:
            await on_frame(text)


async def serve_feed(
    websocket: WebSocket,
    context: AppContext,
    feed: Feed,
    on_frame: FrameHandler,
) -> None:
    """Stream *feed* to *websocket* until either side goes away."""
    subscription = feed.subscribe()
    send_lock = asyncio.Lock()

    async def send(payload: dict[str, Any]) -> None:
        async with send_lock:
            await websocket.send_json(payload)

    async def handle(text: str) -> None:
        await on_frame(send, text)

    try:
        await websocket.accept()
    except BaseException:
        subscription.close()
        raise

    total = context.connections.opened(feed.name)
    log = logger.bind(feed=feed.name)
    log.info("websocket_connected", connections=total)

    tasks = [
        asyncio.create_task(_write_feed(send, subscription), name=f"ws-writer:{feed.name}"),
        asyncio.create_task(_read_frames(websocket, handle), name=f"ws-reader:{feed.name}"),
    ]
    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        subscription.close()
        total = context.connections.closed(feed.name)

    for task in done:
        exc = None if task.cancelled() else task.exception()
        if exc is None:
            continue
        if isinstance(exc, (WebSocketDisconnect, ConnectionError)):
            log.debug("websocket_transport_closed", error=str(exc))
        else:
            log.warning("websocket_task_failed", error=str(exc), error_type=type(exc).__name__)

    if (
        websocket.application_state == WebSocketState.CONNECTED
        and websocket.client_state == WebSocketState.CONNECTED
    ):
        try:
            await websocket.close()
        except (RuntimeError, WebSocketDisconnect, ConnectionError) as exc:
            log.debug("websocket_close_failed", error=str(exc))
    if subscription.dropped:
        log.info("websocket_lagged", dropped=subscription.dropped)
    log.info("websocket_disconnected", connections=total)


async def _ignore_client_frame(send: Sender, text: str) -> None:
    logger.debug("client_frame_ignored", size=len(text))


@router.websocket("/ws")
async def client_feed(websocket: WebSocket, context: WsContext) -> None:
    """Public viewers: published messages only.  Inbound frames are ignored."""
    await serve_feed(websocket, context, context.hub.client, _ignore_client_frame)


@router.websocket("/admin/ws")
async def admin_feed(websocket: WebSocket, context: WsContext) -> None:
    """Moderators: every stored message, plus command frames."""

    async def run_command(send: Sender, text: str) -> None:
        await send(await handle_admin_frame(context, text))

    await serve_feed(websocket, context, context.hub.admin, run_command)
