"""Integration tests for application startup and shutdown.

Covers autostart of stored channels, startup failure on an unusable store
and the orderly shutdown of listeners and adapters.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from chatgate.api.main import create_app
from chatgate.core.exceptions import AdapterError, StartupError
from chatgate.core.message_store import MessageStore
from chatgate.platforms import Platform
from tests.fakes import FakeAdapter, make_settings


async def _seed_channels(database_url: str, *channels: tuple[str, str, bool]) -> None:
    store = MessageStore.from_url(database_url)
    await store.open()
    try:
        for platform, name, listen in channels:
            await store.add_channel(name, platform, listen=listen)
    finally:
        await store.close()


class TestAutostart:
    async def test_flagged_channels_start_at_boot(self, tmp_path: Path) -> None:
        settings = make_settings(tmp_path, autostart_listeners=True)
        await _seed_channels(
            settings.database_url,
            ("twitch", "alice", True),
            ("twitch", "bob", False),
            ("kick", "carol", True),
        )
        adapter = FakeAdapter()
        app = create_app(settings, adapters={Platform.TWITCH: adapter})

        async with app.router.lifespan_context(app):
            active = await app.state.context.registry.list_active()

        assert [str(key) for key in active] == ["twitch/alice"]
        assert adapter.open_calls == ["alice"]

    async def test_adapter_failure_does_not_abort_startup(self, tmp_path: Path) -> None:
        settings = make_settings(tmp_path, autostart_listeners=True)
        await _seed_channels(settings.database_url, ("twitch", "alice", True))
        adapter = FakeAdapter(fail_with=AdapterError("twitch: refused", platform="twitch"))
        app = create_app(settings, adapters={Platform.TWITCH: adapter})

        async with app.router.lifespan_context(app):
            assert await app.state.context.registry.list_active() == []

        assert adapter.open_calls == ["alice"]

    async def test_autostart_disabled(self, tmp_path: Path) -> None:
        settings = make_settings(tmp_path, autostart_listeners=False)
        await _seed_channels(settings.database_url, ("twitch", "alice", True))
        adapter = FakeAdapter()
        app = create_app(settings, adapters={Platform.TWITCH: adapter})

        async with app.router.lifespan_context(app):
            pass

        assert adapter.open_calls == []


class TestStartupFailure:
    async def test_unusable_store_aborts_startup(self, tmp_path: Path) -> None:
        settings = make_settings(
            tmp_path,
            database_url=f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'chat.db'}",
        )
        app = create_app(settings, adapters={})

        with pytest.raises(StartupError):
            async with app.router.lifespan_context(app):
                pass


class TestShutdown:
    async def test_listeners_and_adapters_are_closed(self, tmp_path: Path) -> None:
        adapter = FakeAdapter()
        app = create_app(make_settings(tmp_path), adapters={Platform.TWITCH: adapter})

        async with app.router.lifespan_context(app):
            context = app.state.context
            await context.start_listener(Platform.TWITCH, "alice")
            subscription = context.hub.admin.subscribe()

        assert adapter.streams["alice"].closed
        assert adapter.closed
        assert subscription.closed
        assert app.state.context is None
