"""Durable storage of chat messages and channel definitions.

The store is the single source of truth every other component reconciles
against: ingestion tasks insert into it, the publish coordinator flips the
``published`` flag in it, and the HTTP history endpoint pages through it.

Concurrency
-----------
All operations go through one ``asyncio.Lock``: one operation completes
before the next begins, whichever ingestion task or request issued it.  No
isolation beyond that is assumed from the database.

Failure semantics
-----------------
Every operation runs in its own transaction.  Any SQLAlchemy or I/O error
rolls the transaction back and surfaces as :class:`StorageError`, so a failed
insert or update leaves no trace.  Nothing is ever dropped silently.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import NamedTuple, Optional

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from chatgate.core.database import build_engine, build_session_factory
from chatgate.core.exceptions import (
    ChannelConflictError,
    MessageNotFoundError,
    StartupError,
    StorageError,
)
from chatgate.core.ids import parse_message_id, uuid7
from chatgate.core.models import Base, ChannelRecord, ChatMessageRecord
from chatgate.core.schemas import Channel, ChatMessage

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50


class MarkPublishedResult(NamedTuple):
    """Outcome of :meth:`MessageStore.mark_published`.

    Attributes:
        message: The canonical row, re-read after the update.
        changed: ``True`` if this call flipped the flag, ``False`` if the
            message was already published.
    """

    message: ChatMessage
    changed: bool


class MessageStore:
    """Async message and channel store on top of SQLAlchemy.

    Args:
        engine: The async engine to use.  The store owns it and disposes it
            in :meth:`close`.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._sessions: async_sessionmaker[AsyncSession] = build_session_factory(engine)
        self._lock = asyncio.Lock()

    @classmethod
    def from_url(cls, database_url: str) -> MessageStore:
        """Build a store for *database_url* (see :func:`build_engine`)."""
        try:
            return cls(build_engine(database_url))
        except (SQLAlchemyError, ValueError, ImportError) as exc:
            raise StartupError(f"Cannot create database engine: {exc}") from exc

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Create the schema if it does not exist yet.

        Raises:
            StartupError: If the database cannot be reached or initialised.
        """
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except (SQLAlchemyError, OSError) as exc:
            raise StartupError(f"Cannot initialise message store: {exc}") from exc
        logger.info("message store ready (%s)", self._engine.url.render_as_string(hide_password=True))

    async def close(self) -> None:
        """Dispose the engine and its connections."""
        await self._engine.dispose()

    async def ping(self) -> bool:
        """Return ``True`` if a trivial query succeeds."""
        try:
            async with self._lock, self._sessions() as session:
                await session.execute(sa.text("SELECT 1"))
            return True
        except (SQLAlchemyError, OSError):
            logger.exception("message store ping failed")
            return False

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def insert(self, message: ChatMessage) -> ChatMessage:
        """Append *message* and return it as stored.

        The ``published`` flag is stored as given: ``False`` for ingested
        chat, ``True`` only for system notices built pre-published.

        Raises:
            StorageError: On a constraint violation (e.g. a duplicate id) or
                any I/O failure.
        """
        record = ChatMessageRecord(
            id=message.id,
            platform=message.platform,
            channel=message.channel,
            username=message.username,
            content=message.content,
            additional_info=message.additional_info,
            timestamp=message.timestamp,
            published=message.published,
        )
        try:
            async with self._lock, self._sessions() as session, session.begin():
                session.add(record)
        except IntegrityError as exc:
            raise StorageError(f"Message {message.id} violates a constraint: {exc.orig}") from exc
        except (SQLAlchemyError, OSError) as exc:
            raise StorageError(f"Failed to insert message {message.id}: {exc}") from exc
        return ChatMessage.model_validate(record)

    async def list_messages(
        self,
        limit: int = DEFAULT_PAGE_SIZE,
        before: Optional[int] = None,
    ) -> list[ChatMessage]:
        """Return up to *limit* messages, newest first.

        Args:
            limit: Maximum number of messages.  Values below 1 return nothing.
            before: Optional Unix-millisecond timestamp; only messages with a
                strictly smaller ``timestamp`` are eligible.

        Returns:
            Messages sorted by descending timestamp (ties broken by
            descending id).  Empty when nothing matches.

        Raises:
            StorageError: On any I/O failure.
        """
        if limit < 1:
            return []
        stmt = sa.select(ChatMessageRecord)
        if before is not None:
            stmt = stmt.where(ChatMessageRecord.timestamp < before)
        stmt = stmt.order_by(
            ChatMessageRecord.timestamp.desc(),
            ChatMessageRecord.id.desc(),
        ).limit(limit)
        try:
            async with self._lock, self._sessions() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except (SQLAlchemyError, OSError) as exc:
            raise StorageError(f"Failed to list messages: {exc}") from exc
        return [ChatMessage.model_validate(row) for row in rows]

    async def get_message(self, message_id: uuid.UUID | str) -> ChatMessage:
        """Return one message by identifier.

        Raises:
            MessageNotFoundError: If no message has that identifier.
            StorageError: On any I/O failure.
        """
        parsed = _coerce_id(message_id)
        try:
            async with self._lock, self._sessions() as session:
                record = await session.get(ChatMessageRecord, parsed)
        except (SQLAlchemyError, OSError) as exc:
            raise StorageError(f"Failed to read message {parsed}: {exc}") from exc
        if record is None:
            raise MessageNotFoundError(message_id)
        return ChatMessage.model_validate(record)

    async def mark_published(self, message_id: uuid.UUID | str) -> MarkPublishedResult:
        """Set ``published = true`` on a message and return the canonical row.

        The update and the re-read happen in the same transaction.  The flag
        only ever moves from false to true; calling this on an already
        published message changes nothing and reports ``changed=False``.

        Raises:
            MessageNotFoundError: If no message has that identifier (including
                identifiers that cannot be parsed at all).
            StorageError: On any I/O failure.
        """
        parsed = _coerce_id(message_id)
        update_stmt = (
            sa.update(ChatMessageRecord)
            .where(
                ChatMessageRecord.id == parsed,
                ChatMessageRecord.published.is_(False),
            )
            .values(published=True)
        )
        try:
            async with self._lock, self._sessions() as session, session.begin():
                result = await session.execute(update_stmt)
                record = await session.get(ChatMessageRecord, parsed, populate_existing=True)
                if record is None:
                    raise MessageNotFoundError(message_id)
                message = ChatMessage.model_validate(record)
        except (SQLAlchemyError, OSError) as exc:
            raise StorageError(f"Failed to publish message {parsed}: {exc}") from exc
        return MarkPublishedResult(message=message, changed=result.rowcount == 1)

    # ------------------------------------------------------------------
    # Channels
    # ------------------------------------------------------------------

    async def add_channel(self, name: str, platform: str, listen: bool = False) -> Channel:
        """Register a channel.

        Raises:
            ChannelConflictError: If (platform, name) is already registered.
            StorageError: On any other failure.
        """
        record = ChannelRecord(id=uuid7(), name=name, platform=platform, listen=listen)
        try:
            async with self._lock, self._sessions() as session, session.begin():
                existing = await session.execute(
                    sa.select(ChannelRecord.id).where(
                        ChannelRecord.platform == platform,
                        ChannelRecord.name == name,
                    )
                )
                if existing.first() is not None:
                    raise ChannelConflictError(platform, name)
                session.add(record)
        except IntegrityError as exc:
            raise ChannelConflictError(platform, name) from exc
        except (SQLAlchemyError, OSError) as exc:
            raise StorageError(f"Failed to add channel {platform}/{name}: {exc}") from exc
        return Channel.model_validate(record)

    async def delete_channel(self, platform: str, name: str) -> bool:
        """Remove a channel.

        Deleting does not stop a running listener; that is a separate call.

        Returns:
            ``True`` if a channel was removed, ``False`` if none matched.

        Raises:
            StorageError: On any I/O failure.
        """
        stmt = sa.delete(ChannelRecord).where(
            ChannelRecord.platform == platform,
            ChannelRecord.name == name,
        )
        try:
            async with self._lock, self._sessions() as session, session.begin():
                result = await session.execute(stmt)
        except (SQLAlchemyError, OSError) as exc:
            raise StorageError(f"Failed to delete channel {platform}/{name}: {exc}") from exc
        return result.rowcount > 0

    async def list_channels(self) -> list[Channel]:
        """Return every registered channel ordered by platform then name.

        Raises:
            StorageError: On any I/O failure.
        """
        stmt = sa.select(ChannelRecord).order_by(ChannelRecord.platform, ChannelRecord.name)
        try:
            async with self._lock, self._sessions() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except (SQLAlchemyError, OSError) as exc:
            raise StorageError(f"Failed to list channels: {exc}") from exc
        return [Channel.model_validate(row) for row in rows]


def _coerce_id(message_id: uuid.UUID | str) -> uuid.UUID:
    if isinstance(message_id, uuid.UUID):
        return message_id
    parsed = parse_message_id(message_id)
    if parsed is None:
        raise MessageNotFoundError(message_id)
    return parsed
