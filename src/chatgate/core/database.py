"""Async SQLAlchemy engine and session factory helpers.

Provides:
- build_engine():          create the AsyncEngine for a database URL
- build_session_factory(): the async_sessionmaker bound to an engine
- Base.metadata:           re-exported so callers can create the schema

Unlike a module-level singleton, the engine is created by the application
lifespan and owned by the :class:`~chatgate.core.message_store.MessageStore`,
so tests can point every component at a throwaway database.

SQLite URLs use the ``aiosqlite`` driver, e.g.::

    sqlite+aiosqlite:///./chat_messages.db
    sqlite+aiosqlite://                      (in-memory, single shared connection)
"""

from __future__ import annotations

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from chatgate.core.models.base import Base  # noqa: F401


def _is_in_memory_sqlite(database_url: str) -> bool:
    url = make_url(database_url)
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


def build_engine(database_url: str) -> AsyncEngine:
    """Create the async engine for *database_url*.

    In-memory SQLite gets a ``StaticPool`` so that every session sees the
    same database.  Server databases get a small pre-pinged pool; the store
    serializes its operations anyway, so a large pool buys nothing.
    """
    if _is_in_memory_sqlite(database_url):
        return create_async_engine(
            database_url,
            echo=False,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    if make_url(database_url).get_backend_name() == "sqlite":
        return create_async_engine(database_url, echo=False)
    return create_async_engine(
        database_url,
        echo=False,
        pool_size=2,
        max_overflow=2,
        pool_pre_ping=True,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Return the session factory used by the message store."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
