"""Coded application errors.

Each class fixes an HTTP status and a default machine-readable code. The
exception handlers turn them into problem-details responses, so routes
and services raise them directly instead of building error responses.
"""

from typing import Any


class AppException(Exception):
    """Base class for every coded error.

    Args:
        message: Human-readable message, defaults to the class message
        error_code: Overrides the class code for one raise site
        details: Extra fields copied into 4xx responses
        **extra: Shorthand for additional ``details`` entries; None values
            are dropped

    Example:
        raise NotFoundError("Tenant not found", resource="tenant", resource_id="42")
    """

    message: str = "An unexpected error occurred"
    error_code: str = "INTERNAL_ERROR"
    status_code: int = 500

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
        **extra: Any,
    ) -> None:
        self.message = message or type(self).message
        self.error_code = error_code or type(self).error_code
        self.details = dict(details or {})
        self.details.update({k: v for k, v in extra.items() if v is not None})
        super().__init__(self.message)

    @property
    def is_server_error(self) -> bool:
        return self.status_code >= 500

    def __repr__(self) -> str:
        return f"{type(self).__name__}(error_code={self.error_code!r}, message={self.message!r})"


class BadRequestError(AppException):
    message = "Bad request"
    error_code = "BAD_REQUEST"
    status_code = 400


class UnauthorizedError(AppException):
    """No principal, or the bearer token did not verify."""

    message = "Authentication required"
    error_code = "UNAUTHENTICATED"
    status_code = 401


class ForbiddenError(AppException):
    """The principal is known but may not do this."""

    message = "Access forbidden"
    error_code = "FORBIDDEN"
    status_code = 403


class NotFoundError(AppException):
    message = "Resource not found"
    error_code = "NOT_FOUND"
    status_code = 404


class ConflictError(AppException):
    message = "Resource conflict"
    error_code = "CONFLICT"
    status_code = 409


class ServiceUnavailableError(AppException):
    """A backing store or external service cannot be reached right now."""

    message = "Service temporarily unavailable"
    error_code = "SERVICE_UNAVAILABLE"
    status_code = 503
