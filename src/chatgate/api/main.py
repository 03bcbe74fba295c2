"""FastAPI application factory and entry point.

Creates the application instance, registers middleware and exception
handlers, mounts the API routers under ``/api`` and, when present, serves
the moderation UI build from ``STATIC_DIR`` for every other path.

Usage::

    # Development server (from project root)
    uvicorn chatgate.api.main:app --reload --port 3000

    # Or through the console script
    chatgate --port 3000
"""

from __future__ import annotations

import time
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Callable, Optional

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from chatgate import __version__
from chatgate.api.dependencies import Context
from chatgate.api.errors import register_exception_handlers
from chatgate.config.settings import Settings, get_settings
from chatgate.context import AppContext
from chatgate.core.logging_config import configure_logging, request_id_var
from chatgate.core.message_store import MessageStore
from chatgate.core.metrics import (
    get_metrics_response,
    http_request_duration_seconds,
    http_requests_total,
)
from chatgate.platforms import Platform, PlatformAdapter

# ---------------------------------------------------------------------------
# Logging configuration is applied once at module import time so that log
# records emitted during app construction are captured correctly.
# The log level is re-applied inside create_app() after settings are loaded.
# ---------------------------------------------------------------------------

configure_logging("INFO")

logger = structlog.get_logger(__name__)


def _route_label(request: Request) -> str:
    """Route template for metric labels, so ids do not explode cardinality."""
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    return path if path else "<unmatched>"


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(
    settings: Optional[Settings] = None,
    *,
    store: Optional[MessageStore] = None,
    adapters: Optional[dict[Platform, PlatformAdapter]] = None,
) -> FastAPI:
    """Build and configure the FastAPI application.

    Separated from the module-level ``app`` singleton so that tests can build
    an application against their own settings, store and adapters.

    Args:
        settings: Settings to use; :func:`get_settings` otherwise.
        store: Optional pre-built message store (tests).
        adapters: Optional adapter table replacing the registered adapters.

    Returns:
        A fully configured ``FastAPI`` instance.
    """
    settings = settings or get_settings()

    # Re-apply logging configuration with the correct level from settings.
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(application: FastAPI) -> AsyncIterator[None]:
        """Open the store, build the context, autostart listeners; undo on exit.

        A :class:`~chatgate.core.exceptions.StartupError` from the store
        propagates and aborts server startup.
        """
        context = await AppContext.create(settings, store=store, adapters=adapters)
        application.state.context = context
        logger.info(
            "application_startup",
            app_name=settings.app_name,
            debug=settings.debug,
            log_level=settings.log_level,
            platforms=sorted(p.value for p in context.adapters),
        )
        if settings.autostart_listeners:
            await context.autostart()
        try:
            yield
        finally:
            await context.aclose()
            application.state.context = None
            logger.info("application_shutdown")

    application = FastAPI(
        title=settings.app_name,
        description=(
            "Aggregates live chat from streaming platforms into a moderated feed: "
            "moderators see every message, viewers only approved ones."
        ),
        version=__version__,
        debug=settings.debug,
        # Disable automatic redirect for paths with trailing slashes.
        redirect_slashes=False,
        lifespan=lifespan,
    )
    application.state.context = None

    # ---- Middleware --------------------------------------------------------

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---- Request logging middleware ----------------------------------------

    @application.middleware("http")
    async def request_logging_middleware(
        request: Request, call_next: Callable
    ) -> Response:
        """Log every incoming request and its response status + duration.

        Attaches a unique ``request_id`` to the structlog context so that all
        log lines emitted during a request can be correlated, and records the
        HTTP Prometheus metrics.
        """
        request_id = str(uuid.uuid4())
        # Populate the ContextVar so stdlib logging records also carry the ID.
        token = request_id_var.set(request_id)
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        start = time.perf_counter()
        response: Optional[Response] = None
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error("unhandled_exception", exc_info=exc)
            raise
        finally:
            elapsed = time.perf_counter() - start
            status_code = getattr(response, "status_code", 500)
            label = _route_label(request)
            http_requests_total.labels(method=request.method, path=label, status=str(status_code)).inc()
            http_request_duration_seconds.labels(method=request.method, path=label).observe(elapsed)
            log_fn = logger.warning if status_code >= 400 else logger.info
            log_fn(
                "request_complete",
                status_code=status_code,
                elapsed_ms=round(elapsed * 1000, 2),
            )
            structlog.contextvars.clear_contextvars()
            request_id_var.reset(token)

        response.headers["X-Request-ID"] = request_id
        return response

    register_exception_handlers(application)

    # ---- API routers -------------------------------------------------------

    from chatgate.api.routes import channels, feeds, listeners, messages  # noqa: PLC0415

    application.include_router(messages.router, prefix="/api")
    application.include_router(channels.router, prefix="/api")
    application.include_router(listeners.router, prefix="/api")
    application.include_router(feeds.router, prefix="/api")

    # ---- System endpoints -------------------------------------------------

    @application.get("/health", tags=["system"])
    async def health(context: Context) -> JSONResponse:
        """Liveness plus a store round-trip, active listeners and connections.

        Returns ``503`` with ``"status": "degraded"`` when the store does not
        answer.
        """
        database_ok = await context.store.ping()
        listeners = await context.registry.list_active()
        body = {
            "status": "ok" if database_ok else "degraded",
            "database": database_ok,
            "active_listeners": len(listeners),
            "connections": {
                "total": context.connections.total,
                **context.connections.per_feed,
            },
            "version": __version__,
        }
        return JSONResponse(body, status_code=200 if database_ok else 503)

    if settings.metrics_enabled:

        @application.get("/metrics", tags=["system"], include_in_schema=False)
        async def metrics() -> Response:
            """Prometheus text exposition of every registered metric."""
            body, content_type = get_metrics_response()
            return Response(content=body, media_type=content_type)

    # ---- Static files (moderation UI) -------------------------------------
    # Mounted last so every route above takes precedence.

    static_dir = Path(settings.static_dir)
    if static_dir.is_dir():
        application.mount("/", StaticFiles(directory=static_dir, html=True), name="static")

    return application


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

app = create_app()
"""The FastAPI application instance.

This is the ASGI callable passed to Uvicorn.
"""
