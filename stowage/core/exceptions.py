"""Custom application exceptions."""

from typing import Any

from fastapi import HTTPException, status


class AppException(HTTPException):
    """Base application exception."""

    def __init__(
        self,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: str = "An unexpected error occurred",
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=detail, headers=headers)


class ValidationError(AppException):
    """Validation error exception."""

    def __init__(self, detail: str = "Validation failed", errors: list[dict[str, Any]] | None = None) -> None:
        self.errors = errors
        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)


class NotFoundError(AppException):
    """Resource not found exception."""

    def __init__(self, resource: str = "Resource", identifier: str | None = None) -> None:
        detail = f"{resource} not found"
        if identifier:
            detail = f"{resource} with ID '{identifier}' not found"
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class AuthenticationError(AppException):
    """Caller identity missing or invalid."""

    def __init__(self, detail: str = "Could not validate credentials") -> None:
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


class AuthorizationError(AppException):
    """Authorization denied exception."""

    def __init__(self, detail: str = "You don't have permission to access this resource") -> None:
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class ConflictError(AppException):
    """Resource state conflicts with the request."""

    def __init__(self, detail: str = "The request conflicts with existing data") -> None:
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class UnitNotAvailable(ConflictError):
    """Unit not available for the requested interval."""

    def __init__(self, detail: str = "Unit is not available for the selected time period") -> None:
        super().__init__(detail=detail)


class InvalidBookingStatus(ValidationError):
    """Invalid booking status for operation."""

    def __init__(self, detail: str = "This operation is not allowed for the current booking status") -> None:
        super().__init__(detail=detail)


class ServiceUnavailableError(AppException):
    """A required subsystem is not configured."""

    def __init__(self, detail: str = "Service is not configured") -> None:
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)


class TransientStorageError(AppException):
    """Storage failed mid-transaction; nothing was written and the call may be retried."""

    def __init__(self, detail: str = "Temporary storage failure, please retry") -> None:
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail,
            headers={"Retry-After": "1"},
        )


class GenerationExhaustedError(AppException):
    """Bounded retry budget for a unique code was used up."""

    def __init__(self, what: str, attempts: int) -> None:
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Could not generate a unique {what} after {attempts} attempts",
        )


class ExternalServiceError(AppException):
    """External service error."""

    def __init__(self, service: str, detail: str | None = None) -> None:
        message = f"External service '{service}' is unavailable"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=message)


class WebhookVerificationError(AppException):
    """Webhook payload or signature could not be verified."""

    def __init__(self, detail: str = "Invalid webhook signature") -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)
