"""FastAPI dependency injection providers.

Every route that touches runtime state depends on :func:`get_context`, which
returns the :class:`~chatgate.context.AppContext` the lifespan stored on
``app.state``.  Handlers never import components directly.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request, WebSocket
from starlette.requests import HTTPConnection

from chatgate.context import AppContext


def _context_from(connection: HTTPConnection) -> AppContext:
    context = getattr(connection.app.state, "context", None)
    if context is None:
        raise RuntimeError("Application context is not initialised; is the lifespan running?")
    return context


def get_context(request: Request) -> AppContext:
    """Return the application context for an HTTP request."""
    return _context_from(request)


def get_ws_context(websocket: WebSocket) -> AppContext:
    """Return the application context for a WebSocket connection."""
    return _context_from(websocket)


Context = Annotated[AppContext, Depends(get_context)]
WsContext = Annotated[AppContext, Depends(get_ws_context)]
