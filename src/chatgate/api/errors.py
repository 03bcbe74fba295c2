"""Conversion of exceptions into ``{status: "error", message}`` responses.

Status codes:

=========================================  ====
``RequestError`` (incl. unknown platform)   400
request validation failure                  400
``MessageNotFoundError``                    404
``AdapterError``                            500
``StorageError`` (incl. channel conflict)   500
anything else                               500
=========================================  ====
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from chatgate.core.exceptions import ChatGateError, MessageNotFoundError, RequestError

logger = structlog.get_logger(__name__)


def error_body(message: str) -> dict[str, str]:
    return {"status": "error", "message": message}


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=error_body(message))


def status_for(exc: ChatGateError) -> int:
    """Map a chatgate exception to its HTTP status code."""
    # RequestError before anything else: UnknownPlatformError is also an AdapterError.
    if isinstance(exc, RequestError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, MessageNotFoundError):
        return status.HTTP_404_NOT_FOUND
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _describe_validation_error(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()) if item not in ("query", "path", "body"))
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "Invalid request: " + "; ".join(parts) if parts else "Invalid request"


async def _chatgate_error_handler(request: Request, exc: ChatGateError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error("request_failed", error=str(exc), error_type=type(exc).__name__)
    return error_response(status_code, str(exc))


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(status.HTTP_400_BAD_REQUEST, _describe_validation_error(exc))


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("unhandled_exception", exc_info=exc)
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def register_exception_handlers(application: FastAPI) -> None:
    """Install every handler on *application*."""
    application.add_exception_handler(ChatGateError, _chatgate_error_handler)
    application.add_exception_handler(RequestValidationError, _validation_error_handler)
    application.add_exception_handler(StarletteHTTPException, _http_error_handler)
    application.add_exception_handler(Exception, _unhandled_error_handler)
