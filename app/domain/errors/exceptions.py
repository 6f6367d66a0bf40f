"""
Domain-level exception hierarchy.

Every failure the source pipeline can report is a DomainError subclass.
The API layer renders them as ``{"error": {"code", "message", "details"}}``
with the HTTP status carried on the error itself.

Pattern:
- Services and repositories raise DomainError subclasses (never HTTP exceptions)
- Endpoints roll back the request transaction and let the registered
  exception handler render the error
- ``details`` carries context for logs and for the client (ids, states)
"""

from enum import Enum
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Machine-readable error codes returned to clients."""

    # Validation errors
    VALIDATION_FAILED = "VALIDATION_FAILED"
    INVALID_INPUT = "INVALID_INPUT"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    INVALID_STATUS = "INVALID_STATUS"
    UNSUPPORTED_MEDIA_TYPE = "UNSUPPORTED_MEDIA_TYPE"
    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"

    # Authentication/Authorization errors
    UNAUTHORIZED = "UNAUTHORIZED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    TOKEN_INVALID = "TOKEN_INVALID"

    # Resource errors
    NOT_FOUND = "NOT_FOUND"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"

    # Business rule violations
    BUSINESS_RULE_VIOLATION = "BUSINESS_RULE_VIOLATION"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # External service errors
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    EXTERNAL_SERVICE_TIMEOUT = "EXTERNAL_SERVICE_TIMEOUT"
    EXTERNAL_SERVICE_UNAVAILABLE = "EXTERNAL_SERVICE_UNAVAILABLE"

    # System errors
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"
    STORAGE_ERROR = "STORAGE_ERROR"


class DomainError(Exception):
    """
    Base exception for all domain-level errors.

    Attributes:
        code: Machine-readable error code (ErrorCode enum)
        message: Human-readable error message
        details: Additional context as dict
        http_status_code: HTTP status the API layer responds with
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        http_status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.code = code
        self.message = message
        self.http_status_code = http_status_code
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self):
        return f"{self.code.value}: {self.message}"

    def log(self, logger_instance=None):
        """Log error with full context for debugging."""
        target_logger = logger_instance or logger
        log_method = target_logger.error if self.http_status_code >= 500 else target_logger.warning
        log_method(
            f"Domain error: {self.code.value} - {self.message}",
            extra={
                "error_code": self.code.value,
                "error_message": self.message,
                "details": self.details,
                "http_status": self.http_status_code,
            },
        )


class ValidationError(DomainError):
    """Request is malformed or violates an input rule."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            http_status_code=400,
            details=details,
        )


class NotFoundError(DomainError):
    """Requested resource does not exist or is not visible to the caller."""

    def __init__(
        self,
        message: str,
        resource_type: Optional[str] = None,
        resource_id: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        full_details = details or {}
        if resource_type:
            full_details["resource_type"] = resource_type
        if resource_id:
            full_details["resource_id"] = resource_id

        super().__init__(
            code=ErrorCode.NOT_FOUND,
            message=message,
            http_status_code=404,
            details=full_details,
        )


class ConflictError(DomainError):
    """Request conflicts with the current state of a resource."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INVALID_STATE_TRANSITION,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            http_status_code=409,
            details=details,
        )


class InvalidStateTransitionError(ConflictError):
    """A source status change is not permitted from its current state."""

    def __init__(
        self,
        current_status: Any,
        target_status: Any,
        source_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        current = getattr(current_status, "value", current_status)
        target = getattr(target_status, "value", target_status)
        full_details = details or {}
        full_details.update({"current_status": current, "target_status": target})
        if source_id:
            full_details["source_id"] = source_id

        super().__init__(
            message=f"Cannot move source from '{current}' to '{target}'",
            code=ErrorCode.INVALID_STATE_TRANSITION,
            details=full_details,
        )
        self.current_status = current
        self.target_status = target


class AuthError(DomainError):
    """Missing, expired or invalid credentials."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.UNAUTHORIZED,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            http_status_code=401,
            details=details,
        )


class BusinessRuleViolationError(DomainError):
    """Business logic constraint violated."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.BUSINESS_RULE_VIOLATION,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            http_status_code=400,
            details=details,
        )


class RateLimitError(DomainError):
    """Caller exceeded rate limit."""

    def __init__(
        self,
        message: str,
        retry_after: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        full_details = details or {}
        if retry_after is not None:
            full_details["retry_after"] = retry_after

        super().__init__(
            code=ErrorCode.RATE_LIMIT_EXCEEDED,
            message=message,
            http_status_code=429,
            details=full_details,
        )


class ExternalServiceError(DomainError):
    """The workflow engine (or another upstream) rejected or dropped a call."""

    def __init__(
        self,
        message: str,
        service_name: Optional[str] = None,
        original_error: Optional[Exception] = None,
        code: ErrorCode = ErrorCode.EXTERNAL_SERVICE_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        full_details = details or {}
        if service_name:
            full_details["service_name"] = service_name
        if original_error:
            full_details["original_error"] = str(original_error)

        super().__init__(
            code=code,
            message=message,
            http_status_code=502,
            details=full_details,
        )


class StorageError(DomainError):
    """The relational store or object store failed while applying a change."""

    def __init__(
        self,
        message: str,
        original_error: Optional[Exception] = None,
        code: ErrorCode = ErrorCode.DATABASE_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        full_details = details or {}
        if original_error:
            full_details["original_error"] = str(original_error)

        super().__init__(
            code=code,
            message=message,
            http_status_code=500,
            details=full_details,
        )
