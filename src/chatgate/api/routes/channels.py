"""Channel registration routes.

Routes:
    GET    /channels                       - list registered channels
    POST   /channels/{platform}/{name}     - register a channel (``?listen=true``
                                             to start it at boot)
    DELETE /channels/{platform}/{name}     - remove a channel

Registering or removing a channel never starts or stops a listener; use
``/listen`` and ``/unlisten`` for that.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Query

from chatgate.api.dependencies import Context

router = APIRouter(tags=["channels"])


@router.get("/channels")
async def list_channels(context: Context) -> dict[str, Any]:
    channels = await context.store.list_channels()
    return {
        "status": "success",
        "channels": [channel.model_dump(mode="json") for channel in channels],
    }


@router.post("/channels/{platform}/{name}")
async def add_channel(
    platform: str,
    name: str,
    context: Context,
    listen: bool = Query(default=False, description="Start this channel automatically at boot."),
) -> dict[str, Any]:
    """Register a channel.  A duplicate (platform, name) is a storage conflict."""
    channel = await context.add_channel(platform, name, listen=listen)
    return {
        "status": "success",
        "message": f"Channel {channel.name} added on {channel.platform}",
        "channel": channel.model_dump(mode="json"),
    }


@router.delete("/channels/{platform}/{name}")
async def delete_channel(platform: str, name: str, context: Context) -> dict[str, Any]:
    """Remove a channel.  Removing an unknown channel is not an error."""
    removed = await context.remove_channel(platform, name)
    return {
        "status": "success",
        "message": f"Channel {name} removed" if removed else f"Channel {name} was not registered",
        "removed": removed,
    }
