"""
Domain error taxonomy
---------------------------------
Features:
- `CitizenError` is the base class for every error the core raises on purpose
- Each subclass carries a stable machine-readable `kind` and an HTTP status
- `citizen_error_handler` turns them into the standard response envelope
- `request_validation_handler` does the same for request-schema failures

Usage:
    from app.core.errors import NotFound
    raise NotFound("Feedback not found")
"""

from __future__ import annotations

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class CitizenError(Exception):
    """Structured application error.

    Args:
        message: Human readable message returned to the caller.
        context: Key-value context written to the log only.
    """

    kind = "Error"
    http_status = 400

    def __init__(self, message: str, context: dict | None = None) -> None:
        self.message = message
        self.context = context or {}
        super().__init__(message)


class Unauthorized(CitizenError):
    """Caller lacks the capability (or has no session at all)."""

    kind = "Unauthorized"
    http_status = 403

    def __init__(self, message: str, authenticated: bool = True, context: dict | None = None) -> None:
        super().__init__(message, context)
        if not authenticated:
            self.http_status = 401


class CategoryAccessDenied(Unauthorized):
    kind = "CategoryAccessDenied"


class InvalidTransition(CitizenError):
    kind = "InvalidTransition"
    http_status = 409


class TicketClosed(CitizenError):
    kind = "TicketClosed"
    http_status = 409


class InvalidState(CitizenError):
    kind = "InvalidState"
    http_status = 409


class SelfFollowNotAllowed(CitizenError):
    kind = "SelfFollowNotAllowed"
    http_status = 400


class ConflictingUpdate(CitizenError):
    """Another writer changed the ticket first; retry against fresh state."""

    kind = "ConflictingUpdate"
    http_status = 409


class NotFound(CitizenError):
    kind = "NotFound"
    http_status = 404


class ValidationFailed(CitizenError):
    """Input passed the schema but violates a taxonomy or business constraint."""

    kind = "ValidationFailed"
    http_status = 400


async def citizen_error_handler(request: Request, exc: CitizenError) -> JSONResponse:
    """Convert a CitizenError into `{"code", "message", "data": {"kind"}}`."""
    logger.warning(
        "%s %s -> %s: %s",
        request.method,
        request.url.path,
        exc.kind,
        exc.message,
        extra={f"error.ctx.{k}": v for k, v in exc.context.items()},
    )
    return JSONResponse(
        status_code=exc.http_status,
        content={
            "code": exc.http_status,
            "message": exc.message,
            "data": {"kind": exc.kind},
        },
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Schema failures use the same envelope, kind `ValidationFailed`, status 422."""
    fields = [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    logger.warning("%s %s -> ValidationFailed: %s", request.method, request.url.path, fields)
    message = "; ".join(f"{'.'.join(field['loc'][1:]) or 'body'}: {field['msg']}" for field in fields) or "Invalid request"
    return JSONResponse(
        status_code=422,
        content={
            "code": 422,
            "message": message,
            "data": {"kind": ValidationFailed.kind, "errors": fields},
        },
    )
