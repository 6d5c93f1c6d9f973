"""
Exception handlers that render every failure in the response envelope.

- ``HTTPException``          → its own status, ``detail`` as the message.
- ``RequestValidationError`` → 400 with the first validation problem.
- ``SQLAlchemyError`` / malformed filters / anything else → 500 with a
  generic message.  Details go to the log only.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.services.lens_query import MalformedFilterError

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error"


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": "error", "message": message, "data": None},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_response(exc.status_code, str(exc.detail))


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{field}: {first.get('msg', 'invalid value')}" if field else first.get("msg", "")
    else:
        message = "Invalid request"
    return error_response(400, message)


async def server_error_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled error on %s %s: %s",
        request.method, request.url.path, exc, exc_info=exc,
    )
    return error_response(500, INTERNAL_ERROR_MESSAGE)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, server_error_handler)
    app.add_exception_handler(MalformedFilterError, server_error_handler)
    app.add_exception_handler(Exception, server_error_handler)
