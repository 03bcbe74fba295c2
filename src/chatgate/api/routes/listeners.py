"""Listener control routes.

Routes:
    POST /listen/{platform}/{name}    - start ingesting a channel
    POST /unlisten/{platform}/{name}  - stop ingesting a channel
    GET  /listeners                   - channels with a running listener
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter

from chatgate.api.dependencies import Context
from chatgate.core.exceptions import UnknownPlatformError
from chatgate.ingestion import ListenerOutcome
from chatgate.platforms import Platform

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["listeners"])

_LISTEN_MESSAGES: dict[ListenerOutcome, str] = {
    ListenerOutcome.STARTED: "Started listening to {platform} channel {name}",
    ListenerOutcome.ALREADY_LISTENING: "Already listening to {platform} channel {name}",
    ListenerOutcome.STOPPED: "Stopped listening to {platform} channel {name}",
    ListenerOutcome.NOT_LISTENING: "Not listening to {platform} channel {name}",
}


def _outcome_body(outcome: ListenerOutcome, platform: str, name: str) -> dict[str, Any]:
    return {
        "status": "success",
        "message": _LISTEN_MESSAGES[outcome].format(platform=platform, name=name),
        "outcome": outcome.value,
    }


@router.post("/listen/{platform}/{name}")
async def listen(platform: str, name: str, context: Context) -> dict[str, Any]:
    """Start a listener.  Listening twice to the same channel is a no-op."""
    parsed = Platform.parse(platform)
    outcome = await context.start_listener(parsed, name)
    logger.info("listen_requested", platform=parsed.value, channel=name, outcome=outcome.value)
    return _outcome_body(outcome, parsed.value, name)


@router.post("/unlisten/{platform}/{name}")
async def unlisten(platform: str, name: str, context: Context) -> dict[str, Any]:
    """Stop a listener.  Stopping a channel nobody listens to succeeds."""
    try:
        parsed = Platform.parse(platform)
    except UnknownPlatformError:
        return _outcome_body(ListenerOutcome.NOT_LISTENING, platform, name)
    outcome = await context.stop_listener(parsed, name)
    logger.info("unlisten_requested", platform=parsed.value, channel=name, outcome=outcome.value)
    return _outcome_body(outcome, parsed.value, name)


@router.get("/listeners")
async def list_listeners(context: Context) -> dict[str, Any]:
    keys = await context.registry.list_active()
    return {
        "status": "success",
        "listeners": [{"platform": key.platform.value, "channel": key.channel} for key in keys],
    }
