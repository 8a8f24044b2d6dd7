"""Coded errors raised by the tenant boundary.

The isolation gate maps every failure to one of these codes. The
connection layer and the tenant router raise the lower three instead of
letting raw database errors escape.
"""

from firmsync.core.errors import (
    AppException,
    BadRequestError,
    ForbiddenError,
    NotFoundError,
    ServiceUnavailableError,
    UnauthorizedError,
)


class MissingFirmCodeError(BadRequestError):
    message = "Firm code is required"
    error_code = "MISSING_FIRM_CODE"


class InvalidFirmCodeError(BadRequestError):
    message = "Invalid firm code format"
    error_code = "INVALID_FIRM_CODE_FORMAT"


class UnauthenticatedError(UnauthorizedError):
    message = "Authentication required"
    error_code = "UNAUTHENTICATED"


class FirmNotFoundError(NotFoundError):
    """Raised for unknown firm codes and for suspended or inactive firms."""

    message = "Firm not found or inactive"
    error_code = "FIRM_NOT_FOUND"


class TenantAccessDeniedError(ForbiddenError):
    message = "Access denied: you do not have permission to access this firm"
    error_code = "TENANT_ACCESS_DENIED"


class GhostSessionRequiredError(ForbiddenError):
    message = "An active ghost session for this firm is required"
    error_code = "GHOST_SESSION_REQUIRED"


class TenantValidationError(AppException):
    message = "Failed to validate tenant access"
    error_code = "TENANT_VALIDATION_ERROR"
    status_code = 500


class MissingTenantContextError(AppException):
    message = "Tenant context not established"
    error_code = "MISSING_TENANT_CONTEXT"
    status_code = 500


class TenantUnavailableError(NotFoundError):
    """Raised before any connection attempt when a tenant has no usable database.

    Covers unknown ids, non-active tenants and tenants that are not
    provisioned yet.
    """

    message = "Tenant not found, inactive or not provisioned"
    error_code = "TENANT_UNAVAILABLE"


class TenantConnectionError(ServiceUnavailableError):
    message = "Tenant database is unavailable"
    error_code = "TENANT_CONNECTION_ERROR"


class TenantQueryError(AppException):
    message = "Tenant query failed"
    error_code = "TENANT_QUERY_ERROR"
    status_code = 500
