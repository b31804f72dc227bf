"""Core exceptions, locking and middleware."""

from stowage.core.exceptions import (
    AppException,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    ExternalServiceError,
    InvalidBookingStatus,
    NotFoundError,
    ServiceUnavailableError,
    UnitNotAvailable,
    ValidationError,
    WebhookVerificationError,
)
from stowage.core.locks import KeyedLock

__all__ = [
    "AppException",
    "AuthenticationError",
    "AuthorizationError",
    "ConflictError",
    "ExternalServiceError",
    "InvalidBookingStatus",
    "NotFoundError",
    "ServiceUnavailableError",
    "UnitNotAvailable",
    "ValidationError",
    "WebhookVerificationError",
    "KeyedLock",
]
