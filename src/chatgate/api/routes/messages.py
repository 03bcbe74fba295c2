"""Message history, moderation and announcement routes.

Routes:
    GET  /messages         - paginated history, newest first
    POST /publish/{id}     - approve a pending message for the client feed
    POST /announce         - store a system notice and send it on both feeds
"""

from __future__ import annotations

from typing import Any, Optional

import structlog
from fastapi import APIRouter, Query

from chatgate.api.dependencies import Context
from chatgate.core.exceptions import RequestError
from chatgate.core.schemas import AnnouncementCreate

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["messages"])


# ---------------------------------------------------------------------------
# GET /messages
# ---------------------------------------------------------------------------


@router.get("/messages")
async def list_messages(
    context: Context,
    limit: Optional[int] = Query(default=None, description="Page size, clamped to [1, MAX_PAGE_SIZE]."),
    before: Optional[int] = Query(default=None, description="Only messages with timestamp < before (ms)."),
) -> dict[str, Any]:
    """Return up to ``limit`` messages ordered by descending timestamp."""
    messages = await context.list_messages(limit=limit, before=before)
    return {
        "status": "success",
        "messages": [message.model_dump(mode="json") for message in messages],
    }


# ---------------------------------------------------------------------------
# POST /publish/{id}
# ---------------------------------------------------------------------------


@router.post("/publish", include_in_schema=False)
@router.post("/publish/", include_in_schema=False)
async def publish_missing_id() -> None:
    raise RequestError("Missing message id")


@router.post("/publish/{message_id}")
async def publish_message(message_id: str, context: Context) -> dict[str, Any]:
    """Approve a message.

    The first call emits the message on the client feed.  Publishing an
    already published message succeeds with ``already_published: true`` and
    emits nothing.
    """
    if not message_id.strip():
        raise RequestError("Missing message id")
    result = await context.publisher.publish(message_id.strip())
    return {
        "status": "success",
        "message": "Message already published" if result.already_published else "Message published",
        "published_message": result.message.model_dump(mode="json"),
        "already_published": result.already_published,
    }


# ---------------------------------------------------------------------------
# POST /announce
# ---------------------------------------------------------------------------


@router.post("/announce")
async def announce(body: AnnouncementCreate, context: Context) -> dict[str, Any]:
    """Create a pre-published system notice."""
    notice = await context.publisher.announce(body.content)
    logger.info("announcement_created", message_id=str(notice.id))
    return {
        "status": "success",
        "message": "Announcement sent",
        "published_message": notice.model_dump(mode="json"),
    }
