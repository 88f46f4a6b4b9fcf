"""Error codes and exceptions raised by the public website API."""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(Enum):
    """Machine-readable error codes returned in ``error.code``."""

    INVALID_REQUEST = "invalid_request"
    INVALID_CURSOR = "invalid_cursor"
    INVALID_SLUG = "invalid_slug"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    NOT_CONFIGURED = "not_configured"
    INTERNAL_ERROR = "internal_error"


class PublicApiError(Exception):
    """Base error with an HTTP status, a code and a user-safe message."""

    status_code = 500
    code = ErrorCode.INTERNAL_ERROR
    default_message = "Something went wrong"

    def __init__(self, message: str | None = None, *, details: Any = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"

    def to_payload(self) -> dict[str, Any]:
        error: dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.details is not None:
            error["details"] = self.details
        return {"error": error}


class ValidationError(PublicApiError):
    """Raised for malformed query parameters or path values."""

    status_code = 400
    code = ErrorCode.INVALID_REQUEST
    default_message = "Invalid query parameters"


class InvalidCursorError(ValidationError):
    code = ErrorCode.INVALID_CURSOR
    default_message = "Cursor is invalid"


class InvalidSlugError(ValidationError):
    code = ErrorCode.INVALID_SLUG
    default_message = "Slug must end with `--<eventId>`"


class UnauthorizedError(PublicApiError):
    status_code = 401
    code = ErrorCode.UNAUTHORIZED
    default_message = "Invalid API key"


class NotFoundError(PublicApiError):
    status_code = 404
    code = ErrorCode.NOT_FOUND
    default_message = "Event not found"


class NotPublicError(NotFoundError):
    """Raised when projecting an event whose status is not publishable.

    The response is indistinguishable from a missing event; the status is only
    kept on the exception for logging.
    """

    def __init__(self, event_id: str | None, status: str | None) -> None:
        super().__init__()
        self.event_id = event_id
        self.status = status


class NotConfiguredError(PublicApiError):
    status_code = 503
    code = ErrorCode.NOT_CONFIGURED
    default_message = "Service is not configured"


class InternalError(PublicApiError):
    status_code = 500
    code = ErrorCode.INTERNAL_ERROR
    default_message = "Unable to load events"


class ProjectionError(InternalError):
    """Raised when a publishable record cannot be turned into its public shape."""

    default_message = "Unable to serialise event"

    def __init__(self, event_id: str | None, reason: str) -> None:
        super().__init__()
        self.event_id = event_id
        self.reason = reason
