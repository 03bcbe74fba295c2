"""Application settings loaded from environment variables.

Uses Pydantic Settings v2 for validated, type-safe configuration.
Every tunable of the service is read through this module. Never call
``os.getenv`` directly elsewhere in the codebase.

Usage::

    from chatgate.config.settings import get_settings

    settings = get_settings()
    db_url = settings.database_url
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_LOG_LEVELS: tuple[str, ...] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """Service-wide configuration backed by environment variables and an optional .env file.

    Every field has a default so the service starts with zero configuration
    against a local SQLite file.  The YouTube adapter additionally needs
    ``YOUTUBE_API_KEY`` before it can open a stream.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Message store
    # ------------------------------------------------------------------

    database_url: str = "sqlite+aiosqlite:///./chat_messages.db"
    """Async SQLAlchemy DSN of the message store.

    The default is a SQLite file in the working directory, e.g.::

        sqlite+aiosqlite:///./chat_messages.db
    """

    # ------------------------------------------------------------------
    # Server
    # ------------------------------------------------------------------

    app_name: str = "chatgate"
    """Human-readable application name shown in the OpenAPI docs."""

    debug: bool = False
    """Enable FastAPI debug mode.  Never True in production."""

    log_level: str = "INFO"
    """Logging verbosity.  One of: DEBUG, INFO, WARNING, ERROR, CRITICAL."""

    host: str = "0.0.0.0"
    """Interface the HTTP server binds to."""

    port: int = 3000
    """TCP port the HTTP server listens on."""

    allowed_origins: list[str] = ["*"]
    """Origins permitted by the CORS middleware."""

    static_dir: str = "static"
    """Directory served for non-API paths (the moderation UI build).  Skipped
    when it does not exist."""

    # ------------------------------------------------------------------
    # Feeds and pagination
    # ------------------------------------------------------------------

    feed_backlog: int = Field(default=1000, ge=1)
    """Unread messages buffered per feed subscriber before the oldest are dropped."""

    default_page_size: int = Field(default=50, ge=1)
    """Page size of ``GET /api/messages`` when ``limit`` is omitted."""

    max_page_size: int = Field(default=1000, ge=1)
    """Upper clamp for the ``limit`` query parameter."""

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    adapter_connect_timeout: float = Field(default=15.0, gt=0)
    """Seconds a platform adapter may take to establish a chat stream."""

    autostart_listeners: bool = True
    """Start every stored channel flagged ``listen`` when the service boots."""

    # ------------------------------------------------------------------
    # Twitch
    # ------------------------------------------------------------------

    twitch_irc_url: str = "wss://irc-ws.chat.twitch.tv:443"
    """Twitch chat IRC-over-WebSocket endpoint."""

    twitch_nickname: Optional[str] = None
    """IRC nick used to join channels.  ``None`` picks an anonymous
    ``justinfan<digits>`` nick, which Twitch accepts read-only without a token."""

    # ------------------------------------------------------------------
    # YouTube
    # ------------------------------------------------------------------

    youtube_api_key: Optional[str] = None
    """YouTube Data API v3 key.  Required for listening to YouTube channels."""

    youtube_api_base_url: str = "https://www.googleapis.com/youtube/v3"
    """Base URL of the YouTube Data API v3."""

    youtube_poll_interval: float = Field(default=5.0, gt=0)
    """Minimum seconds between two live chat polls, even if the API asks for less."""

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    metrics_enabled: bool = True
    """Expose Prometheus metrics at ``GET /metrics``."""

    @field_validator("log_level")
    @classmethod
    def normalise_log_level(cls, v: str) -> str:
        """Upper-case the level name and reject names logging does not know.

        Raises:
            ValueError: If *v* is not a standard logging level name.
        """
        level = v.strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(_LOG_LEVELS)}, got {v!r}")
        return level


@lru_cache
def get_settings() -> Settings:
    """Return the cached application settings singleton.

    Uses ``functools.lru_cache`` so that Pydantic Settings reads the environment
    and .env file exactly once per process lifetime.  In tests, call
    ``get_settings.cache_clear()`` after patching environment variables.

    Returns:
        Settings: The validated settings object.
    """
    return Settings()
