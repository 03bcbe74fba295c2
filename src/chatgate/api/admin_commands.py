"""Commands accepted on the admin WebSocket.

Moderators can drive the service over the same socket that streams the admin
feed.  Each inbound text frame is one JSON object::

    {"type": "listen_channel", "platform": "twitch", "name": "alice"}
    {"type": "confirm_message", "id": "0190f3c4-..."}
    {"type": "get_messages", "limit": 20, "before": 1718000000000}

and gets exactly one reply::

    {"type": "command_result", "command": "listen_channel",
     "status": "success", "outcome": "started"}

Failures reply with ``"status": "error"`` and a ``message``; the socket stays
open.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Optional

import structlog
from pydantic import BaseModel, ConfigDict, ValidationError

from chatgate.context import AppContext
from chatgate.core.exceptions import ChatGateError, RequestError
from chatgate.platforms import Platform

logger = structlog.get_logger(__name__)

RESULT_TYPE = "command_result"


class AdminCommandType(str, Enum):
    LISTEN_CHANNEL = "listen_channel"
    UNLISTEN_CHANNEL = "unlisten_channel"
    CONFIRM_MESSAGE = "confirm_message"
    ADD_CHANNEL = "add_channel"
    REMOVE_CHANNEL = "remove_channel"
    GET_CHANNELS = "get_channels"
    GET_MESSAGES = "get_messages"


class AdminCommand(BaseModel):
    """One parsed admin frame.  Which fields are required depends on ``type``."""

    model_config = ConfigDict(extra="ignore")

    type: AdminCommandType
    platform: Optional[str] = None
    name: Optional[str] = None
    id: Optional[str] = None
    limit: Optional[int] = None
    before: Optional[int] = None
    listen: bool = False

    def require(self, *fields: str) -> None:
        missing = [f for f in fields if not getattr(self, f)]
        if missing:
            raise RequestError(f"{self.type.value} requires: {', '.join(missing)}")


def _reply(command: Optional[str], status: str, **payload: Any) -> dict[str, Any]:
    return {"type": RESULT_TYPE, "command": command, "status": status, **payload}


async def _execute(context: AppContext, command: AdminCommand) -> dict[str, Any]:
    kind = command.type

    if kind is AdminCommandType.LISTEN_CHANNEL:
        command.require("platform", "name")
        outcome = await context.start_listener(Platform.parse(command.platform), command.name)
        return {"outcome": outcome.value}

    if kind is AdminCommandType.UNLISTEN_CHANNEL:
        command.require("platform", "name")
        outcome = await context.stop_listener(Platform.parse(command.platform), command.name)
        return {"outcome": outcome.value}

    if kind is AdminCommandType.CONFIRM_MESSAGE:
        command.require("id")
        result = await context.publisher.publish(command.id)
        return {
            "published_message": result.message.model_dump(mode="json"),
            "already_published": result.already_published,
        }

    if kind is AdminCommandType.ADD_CHANNEL:
        command.require("platform", "name")
        channel = await context.add_channel(command.platform, command.name, listen=command.listen)
        return {"channel": channel.model_dump(mode="json")}

    if kind is AdminCommandType.REMOVE_CHANNEL:
        command.require("platform", "name")
        return {"removed": await context.remove_channel(command.platform, command.name)}

    if kind is AdminCommandType.GET_CHANNELS:
        channels = await context.store.list_channels()
        return {"channels": [channel.model_dump(mode="json") for channel in channels]}

    messages = await context.list_messages(limit=command.limit, before=command.before)
    return {"messages": [message.model_dump(mode="json") for message in messages]}


async def handle_admin_frame(context: AppContext, raw: str) -> dict[str, Any]:
    """Parse and execute one admin frame and build its reply.

    Never raises for bad input or failed commands; the reply carries the
    error instead.
    """
    try:
        payload = json.loads(raw)
    except ValueError:
        return _reply(None, "error", message="Frame is not valid JSON")
    if not isinstance(payload, dict):
        return _reply(None, "error", message="Frame must be a JSON object")

    command_name = payload.get("type") if isinstance(payload.get("type"), str) else None
    try:
        command = AdminCommand.model_validate(payload)
    except ValidationError as exc:
        return _reply(command_name, "error", message=f"Invalid command: {exc.errors()[0].get('msg')}")

    try:
        result = await _execute(context, command)
    except ChatGateError as exc:
        logger.warning("admin_command_failed", command=command.type.value, error=str(exc))
        return _reply(command.type.value, "error", message=str(exc))

    logger.info("admin_command_executed", command=command.type.value)
    return _reply(command.type.value, "success", **result)
