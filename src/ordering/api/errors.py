"""Exception handlers mapping domain errors onto HTTP responses.

Every error body carries a ``message``; field-level validation failures also
carry ``errors``.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError, ValidationError

from ordering.errors import OrderingError

logger = structlog.get_logger(__name__)


def _first_message(messages):
    if isinstance(messages, dict):
        for value in messages.values():
            found = _first_message(value)
            if found:
                return found
        return None
    if isinstance(messages, list | tuple):
        return next((str(item) for item in messages if item), None)
    return str(messages) if messages else None


async def ordering_error_handler(request: Request, exc: OrderingError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, error=exc.message, error_type=type(exc).__name__)
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    messages = getattr(exc, "messages", None) or {}
    return JSONResponse(
        status_code=400,
        content={"message": _first_message(messages) or "Invalid request", "errors": jsonable_encoder(messages)},
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"message": "Invalid request", "errors": jsonable_encoder(exc.errors())},
    )


async def not_found_handler(request: Request, exc: ObjectNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"message": "Not found"})


async def stale_write_handler(request: Request, exc: ExpectedVersionError) -> JSONResponse:
    logger.warning("stale_write_rejected", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=409, content={"message": "The record was changed by another request, please retry"})


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", path=request.url.path, error_type=type(exc).__name__)
    return JSONResponse(status_code=500, content={"message": "Server error"})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(OrderingError, ordering_error_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(ObjectNotFoundError, not_found_handler)
    app.add_exception_handler(ExpectedVersionError, stale_write_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
