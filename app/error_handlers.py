"""
Error normaliser: the single boundary where failures become responses.

Every body has the same shape::

    {"success": false, "error": "<message>"}                 # single message
    {"success": false, "error": [{"field": ..., "message": ...}, ...]}

``normalize_error`` is a pure function so it can be unit-tested without
the ASGI stack; the FastAPI handlers registered by
``install_error_handlers`` only wrap its result in a ``JSONResponse``.
"""
import logging
import re

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.errors import (
    AppError,
    DuplicateKey,
    FieldError,
    MalformedIdentifier,
    NotFound,
    ValidationFailed,
)

logger = logging.getLogger(__name__)

# SQLite: "UNIQUE constraint failed: users.username" (single-column only)
_SQLITE_UNIQUE_RE = re.compile(r"UNIQUE constraint failed: \w+\.(\w+)\b(?!,)")
# PostgreSQL: "Key (username)=(alice) already exists."
_POSTGRES_UNIQUE_RE = re.compile(r"Key \((\w+)\)=\(.*\) already exists")


def duplicate_field(exc: IntegrityError) -> str | None:
    """Return the column behind a unique-constraint violation, if any."""
    text = str(exc.orig) if exc.orig is not None else str(exc)
    for pattern in (_SQLITE_UNIQUE_RE, _POSTGRES_UNIQUE_RE):
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def _body(error) -> dict:
    return {"success": False, "error": error}


def _request_field_errors(exc: RequestValidationError) -> list[FieldError]:
    fields = []
    for err in exc.errors():
        # Drop the "body"/"query" prefix FastAPI puts in front of the location.
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        fields.append(FieldError(".".join(loc) or "request", err.get("msg", "Invalid value")))
    return fields


def normalize_error(exc: Exception) -> tuple[int, dict]:
    """Map *exc* to ``(status_code, body)``."""
    if isinstance(exc, (NotFound, MalformedIdentifier)):
        # Never tell a malformed id apart from a missing one.
        return 404, _body(NotFound.default_message)

    if isinstance(exc, ValidationFailed):
        return exc.status_code, _body([f.to_dict() for f in exc.fields])

    if isinstance(exc, RequestValidationError):
        return 400, _body([f.to_dict() for f in _request_field_errors(exc)])

    if isinstance(exc, IntegrityError):
        field = duplicate_field(exc)
        if field is not None:
            return normalize_error(DuplicateKey(field))

    if isinstance(exc, AppError):
        return exc.status_code, _body(exc.message or AppError.default_message)

    if isinstance(exc, StarletteHTTPException):
        return exc.status_code, _body(exc.detail or AppError.default_message)

    return 500, _body(AppError.default_message)


async def _handle(request: Request, exc: Exception) -> JSONResponse:
    status_code, body = normalize_error(exc)
    if status_code >= 500:
        logger.error(
            "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
        )
    else:
        logger.info(
            "%s %s -> %d (%s)", request.method, request.url.path, status_code, type(exc).__name__
        )
    return JSONResponse(status_code=status_code, content=body)


def install_error_handlers(app: FastAPI) -> None:
    """Route every failure category through ``normalize_error``."""
    app.add_exception_handler(AppError, _handle)
    app.add_exception_handler(RequestValidationError, _handle)
    app.add_exception_handler(IntegrityError, _handle)
    app.add_exception_handler(StarletteHTTPException, _handle)
    app.add_exception_handler(Exception, _handle)
