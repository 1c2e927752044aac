"""
Application error types for the Keeper League Sync API.

Services raise these exceptions; the FastAPI app renders them as
``ErrorResponse`` payloads with the matching HTTP status code.
"""

from typing import Any, Dict, Optional


class AppError(Exception):
    """Base application error carrying an HTTP status, an error code and context."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the ErrorResponse shape."""
        return {"error": self.code, "message": self.message, "details": self.details}


class NotFoundError(AppError):
    """A league, roster, player or keeper does not exist (404)."""

    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: Optional[Any] = None, details: Optional[Dict[str, Any]] = None):
        if identifier is not None:
            message = f"{resource} with ID '{identifier}' not found"
        else:
            message = f"{resource} not found"
        context = {"resource": resource, "id": identifier}
        context.update(details or {})
        super().__init__(message, context)


class ValidationError(AppError):
    """Malformed settings, override or sync request (400)."""

    status_code = 400
    code = "VALIDATION_ERROR"


class UnauthorizedError(AppError):
    """Caller identity is missing (401)."""

    status_code = 401
    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Authentication required", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class ForbiddenError(AppError):
    """Caller lacks league access or commissioner rights (403)."""

    status_code = 403
    code = "FORBIDDEN"

    def __init__(self, message: str = "You do not have access to this league", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class RateLimitedError(AppError):
    """Sync request throttled for this caller (429)."""

    status_code = 429
    code = "RATE_LIMITED"

    def __init__(self, retry_after: int, details: Optional[Dict[str, Any]] = None):
        context = {"retry_after": retry_after}
        context.update(details or {})
        super().__init__(f"Too many sync requests. Retry after {retry_after} seconds", context)
        self.retry_after = retry_after


class ExternalServiceError(AppError):
    """The fantasy platform API was unreachable or returned a malformed response (502)."""

    status_code = 502
    code = "EXTERNAL_SERVICE_ERROR"

    def __init__(self, service: str, message: str, details: Optional[Dict[str, Any]] = None):
        context = {"service": service}
        context.update(details or {})
        super().__init__(f"{service} error: {message}", context)
        self.service = service
