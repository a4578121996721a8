"""Custom exception hierarchy and handlers."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any
from uuid import UUID

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    status_code = 400
    code = "app_error"

    def __init__(self, message: str, *, code: str | None = None, details: dict[str, Any] | None = None) -> None:
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_payload(self) -> dict[str, Any]:
        """Serialize exception to the unified error body."""
        return {"error": {"code": self.code, "message": self.message, **self.details}}


class ValidationException(AppException):
    """Raised when input is malformed or violates a domain bound."""

    status_code = 400
    code = "validation_error"


class ExpiredException(ValidationException):
    """Raised when a token or hold is used after its expiry."""

    code = "expired"


class NotFoundException(AppException):
    """Raised when entity is not found."""

    status_code = 404
    code = "not_found"


class ConflictException(AppException):
    """Raised when entity conflicts with current state."""

    status_code = 409
    code = "conflict"


class SlotTakenException(ConflictException):
    """Raised when requested time range overlaps a confirmed booking."""

    code = "time_slot_taken"

    def __init__(self, host_id: UUID, on_date: date, message: str = "Time slot is no longer available") -> None:
        super().__init__(
            message,
            details={
                "host_id": str(host_id),
                "date": on_date.isoformat(),
                "suggest_alternative": True,
            },
        )
        self.host_id = host_id
        self.on_date = on_date


class UnauthorizedException(AppException):
    """Raised when user has no rights for operation."""

    status_code = 403
    code = "forbidden"


def error_response(exc: AppException) -> JSONResponse:
    """Build JSON response for domain error without raising it."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def app_exception_handler(_: Request, exc: AppException) -> JSONResponse:
    """Handle custom domain exceptions."""
    return error_response(exc)


async def http_exception_handler(_: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTP exceptions in unified shape."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"code": "http_error", "message": str(exc.detail)}},
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception("Unhandled error: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"error": {"code": "internal_error", "message": "Internal server error"}},
    )


def register_exception_handlers(app) -> None:
    """Register global exception handlers."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
