"""Shared pytest fixtures for the chatgate test suite.

Fixture summary
---------------
settings         - Settings for one test: SQLite file in ``tmp_path``, no
                   autostart, no static files, short timeouts.
store            - An opened in-memory :class:`MessageStore`.
hub              - A :class:`BroadcastHub` with a small backlog.
fake_adapter     - Scriptable Twitch stand-in (see ``tests/fakes.py``).
app              - FastAPI app built against ``settings`` and
                   ``fake_adapter``, with its lifespan running.
context          - The :class:`AppContext` the running ``app`` built.
client           - ``httpx.AsyncClient`` talking to ``app`` over ASGI.

Tests that need the WebSocket routes build a Starlette ``TestClient`` from
``create_app`` themselves, since the TestClient drives the lifespan on its
own event loop.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# ---------------------------------------------------------------------------
# Env bootstrap (must run before any application imports)
# ---------------------------------------------------------------------------

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("AUTOSTART_LISTENERS", "false")
os.environ.setdefault("STATIC_DIR", "/nonexistent/chatgate-static")
os.environ.pop("YOUTUBE_API_KEY", None)

from chatgate.api.main import create_app  # noqa: E402
from chatgate.config.settings import Settings, get_settings  # noqa: E402
from chatgate.context import AppContext  # noqa: E402
from chatgate.core.broadcast import BroadcastHub  # noqa: E402
from chatgate.core.message_store import MessageStore  # noqa: E402
from chatgate.platforms import Platform  # noqa: E402
from tests.fakes import FakeAdapter, make_settings  # noqa: E402

get_settings.cache_clear()

IN_MEMORY_URL = "sqlite+aiosqlite://"


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return make_settings(tmp_path)


@pytest_asyncio.fixture
async def store() -> AsyncGenerator[MessageStore, None]:
    """Opened in-memory store, disposed after the test."""
    message_store = MessageStore.from_url(IN_MEMORY_URL)
    await message_store.open()
    yield message_store
    await message_store.close()


@pytest.fixture
def hub() -> BroadcastHub:
    return BroadcastHub.create(backlog=16)


@pytest.fixture
def fake_adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest_asyncio.fixture
async def app(settings: Settings, fake_adapter: FakeAdapter):
    """FastAPI app with its lifespan running for the duration of the test."""
    application = create_app(settings, adapters={Platform.TWITCH: fake_adapter})
    async with application.router.lifespan_context(application):
        yield application


@pytest.fixture
def context(app) -> AppContext:
    return app.state.context


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
