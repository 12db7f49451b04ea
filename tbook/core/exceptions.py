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


class InvalidStateTransition(AppException):
    """Requested status or payment status move is not allowed."""

    def __init__(self, field: str, current: str, target: str, detail: str | None = None) -> None:
        self.field = field
        self.current = current
        self.target = target
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail or f"Invalid {field} transition: {current} → {target}",
        )


class DuplicateIdentifier(AppException):
    """Generated identifiers kept colliding with existing records."""

    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Could not allocate unique booking identifiers after {attempts} attempts",
        )


class StoreUnavailable(AppException):
    """Storage timed out or the connection failed."""

    def __init__(self, detail: str | None = None) -> None:
        message = "Booking store is unavailable"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=message)


class RateLimitExceeded(AppException):
    """Rate limit exceeded exception."""

    def __init__(self, detail: str = "Too many requests. Please try again later.") -> None:
        super().__init__(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=detail)
