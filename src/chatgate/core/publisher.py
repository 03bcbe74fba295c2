"""The approve-to-publish transition between the two feeds.

:class:`PublishCoordinator` is the only code path that puts anything on the
client feed.  A message reaches public viewers either because a moderator
published it (pending → published) or because it is a system notice, which
is stored pre-published.
"""

from __future__ import annotations

import logging
import uuid
from typing import NamedTuple

from chatgate.core.broadcast import BroadcastHub
from chatgate.core.message_store import MessageStore
from chatgate.core.metrics import messages_published_total
from chatgate.core.schemas import ChatMessage

logger = logging.getLogger(__name__)


class PublishResult(NamedTuple):
    """Outcome of :meth:`PublishCoordinator.publish`.

    Attributes:
        message: The canonical, published row.
        already_published: ``True`` when the message had been published
            before this call; nothing was emitted in that case.
    """

    message: ChatMessage
    already_published: bool


class PublishCoordinator:
    """Moves messages from pending to published and feeds the client audience.

    Args:
        store: The message store holding the ``published`` flag.
        hub: The broadcast hub whose client feed receives published messages.
    """

    def __init__(self, store: MessageStore, hub: BroadcastHub) -> None:
        self._store = store
        self._hub = hub

    async def publish(self, message_id: uuid.UUID | str) -> PublishResult:
        """Publish one message.

        The first successful call emits the re-read row on the client feed.
        Repeated calls succeed with ``already_published=True`` and emit
        nothing.

        Raises:
            MessageNotFoundError: If *message_id* matches no message.  No feed
                is touched.
            StorageError: If the store update fails.
        """
        result = await self._store.mark_published(message_id)
        if not result.changed:
            logger.info("message %s was already published; not re-emitting", result.message.id)
            return PublishResult(message=result.message, already_published=True)

        delivered = self._hub.client.publish(result.message)
        messages_published_total.inc()
        logger.info("published message %s to %d client subscriber(s)", result.message.id, delivered)
        return PublishResult(message=result.message, already_published=False)

    async def announce(self, content: str) -> ChatMessage:
        """Store a system notice and emit it on both feeds.

        Raises:
            StorageError: If the notice cannot be stored.  Nothing is emitted.
        """
        notice = await self._store.insert(ChatMessage.system_notice(content))
        self._hub.admin.publish(notice)
        self._hub.client.publish(notice)
        logger.info("announced system notice %s", notice.id)
        return notice
