"""
Platform Errors

Typed error taxonomy shared by the lifecycle manager, the auth helpers and
the HTTP layer. Every error carries one stable, transport-independent code.
"""

from enum import Enum
from typing import Any, Optional


class ErrorCode(str, Enum):
    """Stable error identifiers returned in the response envelope."""

    # Organization errors
    ORG_ALREADY_EXISTS = "ORG_ALREADY_EXISTS"
    ORG_NOT_FOUND = "ORG_NOT_FOUND"
    ORG_NAME_REQUIRED = "ORG_NAME_REQUIRED"
    CONCURRENT_MODIFICATION = "CONCURRENT_MODIFICATION"
    ORPHANED_STATE = "ORPHANED_STATE"

    # Authentication errors
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    TOKEN_INVALID = "TOKEN_INVALID"
    TOKEN_MISSING = "TOKEN_MISSING"

    # Request errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    NOT_FOUND = "NOT_FOUND"
    NOT_READY = "NOT_READY"

    # Server errors
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    SERVER_ERROR = "SERVER_ERROR"


class PlatformError(Exception):
    """Base class for errors that map onto the response envelope."""

    code: ErrorCode = ErrorCode.SERVER_ERROR
    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Optional[dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(PlatformError):
    """Raised when a request is rejected before reaching the core."""

    code = ErrorCode.VALIDATION_ERROR
    status_code = 400
    default_message = "Validation failed"


class OrganizationNameRequiredError(ValidationError):
    """Raised when a lookup is attempted without an organization name."""

    code = ErrorCode.ORG_NAME_REQUIRED
    default_message = "Organization name is required"


class AlreadyExistsError(PlatformError):
    """Uniqueness violation on organization name, admin email or partition."""

    code = ErrorCode.ORG_ALREADY_EXISTS
    status_code = 409
    default_message = "Organization with this name already exists"


class PartitionAlreadyExistsError(AlreadyExistsError):
    """Raised when the storage partition for an organization is already present."""

    default_message = "Partition already exists"


class NotFoundError(PlatformError):
    """The operand organization does not exist."""

    code = ErrorCode.ORG_NOT_FOUND
    status_code = 404
    default_message = "Organization not found"


class ConcurrentModificationError(PlatformError):
    """The organization changed between load and commit."""

    code = ErrorCode.CONCURRENT_MODIFICATION
    status_code = 409
    default_message = "Organization was modified concurrently, please retry"


class InvalidCredentialsError(PlatformError):
    """
    Generic authentication failure.

    Never distinguishes an unknown email from a wrong password.
    """

    code = ErrorCode.INVALID_CREDENTIALS
    status_code = 401
    default_message = "Invalid email or password"


class UnauthorizedError(PlatformError):
    """Authenticated principal acting outside its own organization."""

    code = ErrorCode.UNAUTHORIZED
    status_code = 401
    default_message = "You are not authorized to perform this action"


class TokenMissingError(UnauthorizedError):
    code = ErrorCode.TOKEN_MISSING
    default_message = "Authorization token is required"


class TokenInvalidError(UnauthorizedError):
    code = ErrorCode.TOKEN_INVALID
    default_message = "Invalid token"


class TokenExpiredError(UnauthorizedError):
    code = ErrorCode.TOKEN_EXPIRED
    default_message = "Token has expired"


class RateLimitedError(PlatformError):
    """Admission denied by the rate limiter."""

    code = ErrorCode.RATE_LIMIT_EXCEEDED
    status_code = 429
    default_message = "Too many requests, please try again later"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        retry_after: int = 0,
    ):
        super().__init__(message, details)
        self.retry_after = retry_after


class UnavailableError(PlatformError):
    """The metadata store could not be reached."""

    code = ErrorCode.SERVICE_UNAVAILABLE
    status_code = 503
    default_message = "Service temporarily unavailable"


class OrphanedStateError(PlatformError):
    """
    Metadata and partition storage disagree after a failed multi-step operation.

    Repair is left to an external reconciliation process.
    """

    code = ErrorCode.ORPHANED_STATE
    status_code = 500
    default_message = "Operation left inconsistent state and requires reconciliation"
