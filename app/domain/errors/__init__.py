"""Domain error hierarchy."""

from .exceptions import (
    DomainError,
    ValidationError,
    NotFoundError,
    ConflictError,
    InvalidStateTransitionError,
    AuthError,
    BusinessRuleViolationError,
    RateLimitError,
    ExternalServiceError,
    StorageError,
    ErrorCode,
)

__all__ = [
    "DomainError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "InvalidStateTransitionError",
    "AuthError",
    "BusinessRuleViolationError",
    "RateLimitError",
    "ExternalServiceError",
    "StorageError",
    "ErrorCode",
]
