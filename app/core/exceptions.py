from typing import Any, Optional

from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.detail = detail


class ValidationError(ServiceError):
    """Malformed input: bad weight, bad date ordering, out-of-range policy values."""

    def __init__(self, message: str, detail: Optional[Any] = None) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST, detail)


class NotFoundError(ServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class ConflictError(ServiceError):
    """Invariant violation: active request exists, terminal state, concurrent promotion."""

    def __init__(self, message: str, detail: Optional[Any] = None) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT, detail)


class InsufficientAllowanceError(ConflictError):
    """Debit does not fit the remaining washes. Converted to an auto-cancellation by wash requests."""

    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            f"Insufficient washes. Required: {required}, Available: {available}",
            detail={"required_washes": required, "available_washes": available},
        )
        self.required = required
        self.available = available


class PermissionDeniedError(ServiceError):
    def __init__(self, message: str = "Insufficient permissions") -> None:
        super().__init__(message, status.HTTP_403_FORBIDDEN)


def error_detail(e: ServiceError) -> Any:
    """HTTPException detail for a service error: plain message, or message plus extra fields."""
    if e.detail is None:
        return e.message
    return {"message": e.message, **e.detail} if isinstance(e.detail, dict) else {"message": e.message, "detail": e.detail}
