"""Command-line entry point: ``python -m chatgate`` or ``chatgate``.

Command-line flags override the matching environment variables::

    chatgate --port 8080 --log-level DEBUG
    chatgate --database-url sqlite+aiosqlite:////var/lib/chatgate/chat.db
"""

from __future__ import annotations

import argparse
import sys
from typing import Optional, Sequence

import uvicorn

from chatgate import __version__
from chatgate.config.settings import Settings, get_settings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chatgate",
        description="Moderated live chat aggregation server.",
    )
    parser.add_argument("--host", help="Interface to bind (default: HOST or 0.0.0.0).")
    parser.add_argument("--port", type=int, help="TCP port (default: PORT or 3000).")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
        help="Logging verbosity (default: LOG_LEVEL or INFO).",
    )
    parser.add_argument("--database-url", help="Async SQLAlchemy DSN of the message store.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def settings_from_args(args: argparse.Namespace, base: Optional[Settings] = None) -> Settings:
    """Return *base* (or the environment settings) with CLI overrides applied."""
    base = base or get_settings()
    overrides = {
        field: value
        for field, value in (
            ("host", args.host),
            ("port", args.port),
            ("log_level", args.log_level),
            ("database_url", args.database_url),
        )
        if value is not None
    }
    return base.model_copy(update=overrides)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = settings_from_args(args)

    from chatgate.api.main import create_app  # noqa: PLC0415

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        log_config=None,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
