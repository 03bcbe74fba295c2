"""Structured logging configuration using structlog.

Call ``configure_logging()`` once at startup (the CLI entry point and
``create_app()`` both do).  Modules then log through either API:

Stdlib usage::

    import logging
    logger = logging.getLogger(__name__)
    logger.info("listener started for %s", channel)

Structlog usage (context binding)::

    import structlog
    logger = structlog.get_logger(__name__)
    logger.info("listener_started", platform="twitch", channel="alice")

A ``request_id`` context variable is populated by the request-logging
middleware in ``api/main.py`` and merged into every record emitted while a
request is served.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar

import structlog
from structlog.types import EventDict, WrappedLogger

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
"""Per-request ID set by the HTTP middleware and read by the log processor."""

_SECRET_SUBSTRINGS: frozenset[str] = frozenset({
    "api_key",
    "password",
    "secret",
    "token",
    "authorization",
    "oauth",
})
"""Lower-cased substrings of event-dict keys whose values are redacted."""

_NOISY_LOGGERS: tuple[str, ...] = (
    "uvicorn.access",
    "httpx",
    "httpcore",
    "websockets",
    "aiosqlite",
)

_REDACTED = "[REDACTED]"


def _is_secret(key: object) -> bool:
    lowered = str(key).lower()
    return any(secret in lowered for secret in _SECRET_SUBSTRINGS)


def _redact_secrets(
    logger: WrappedLogger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    """Replace the values of secret-bearing keys with ``"[REDACTED]"``.

    Nested dicts one level deep (chat metadata, request params) are replaced
    by redacted copies; the caller's dict is never modified.
    """
    for key, val in list(event_dict.items()):
        if _is_secret(key):
            event_dict[key] = _REDACTED
        elif isinstance(val, dict) and any(_is_secret(k) for k in val):
            event_dict[key] = {k: _REDACTED if _is_secret(k) else v for k, v in val.items()}
    return event_dict


def _inject_request_id(
    logger: WrappedLogger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    """Add the current request ID unless ``merge_contextvars`` already did."""
    rid = request_id_var.get()
    if rid is not None:
        event_dict.setdefault("request_id", rid)
    return event_dict


def _shared_processors() -> list[structlog.types.Processor]:
    """Processors applied to structlog and stdlib records alike."""
    return [
        structlog.contextvars.merge_contextvars,
        _inject_request_id,
        _redact_secrets,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
    ]


def _renderer(console: bool) -> structlog.types.Processor:
    if console:
        return structlog.dev.ConsoleRenderer(colors=True)
    return structlog.processors.JSONRenderer()


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structlog and the stdlib root logger.

    Outside ``DEBUG`` every record is one JSON object per line carrying
    ``timestamp``, ``level``, ``logger``, ``event`` and, inside a request,
    ``request_id``.  At ``DEBUG`` the coloured console renderer is used and
    the chatty client libraries keep their own levels.

    Calling it again replaces the root handler instead of adding one.

    Args:
        log_level: A logging level name, case-insensitive.  Unknown names
            fall back to INFO.
    """
    level_name = log_level.upper()
    console = level_name == "DEBUG"
    shared = _shared_processors()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(console),
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level_name, logging.INFO))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.NOTSET if console else logging.WARNING)

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
