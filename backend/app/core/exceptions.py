"""
Domain exceptions for the booking engine.

Services raise these instead of HTTPException so that the same code
paths can be driven from request handlers, scripts and tests. A single
exception handler in app.main turns them into JSON responses with a
stable status code and machine-readable `code`.
"""

from typing import Iterable, Optional

from fastapi import status


class BookingEngineError(Exception):
    """Base exception for all domain-level errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "internal_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code}


class ValidationError(BookingEngineError):
    """Missing or malformed input. Always names the offending fields."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_error"

    def __init__(self, message: str, fields: Optional[Iterable[str]] = None):
        self.fields = list(fields or [])
        super().__init__(message)

    @classmethod
    def missing(cls, fields: Iterable[str]) -> "ValidationError":
        fields = list(fields)
        return cls(f"Missing required fields: {', '.join(fields)}", fields=fields)

    def to_dict(self) -> dict:
        return {**super().to_dict(), "fields": self.fields}


class UnauthorizedError(BookingEngineError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthorized"


class ForbiddenError(BookingEngineError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"


class NotFoundError(BookingEngineError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"

    def __init__(self, entity: str, entity_id=None):
        self.entity = entity
        self.entity_id = entity_id
        if entity_id is None:
            message = f"{entity} not found"
        else:
            message = f"{entity} {entity_id} not found"
        super().__init__(message)


class ConflictError(BookingEngineError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"

    def __init__(self, message: str, retryable: bool = False):
        self.retryable = retryable
        super().__init__(message)

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.retryable:
            data["retryable"] = True
        return data


class InsufficientCapacityError(BookingEngineError):
    status_code = status.HTTP_409_CONFLICT
    code = "insufficient_capacity"

    def __init__(self, message: str, requested: Optional[int] = None, available: Optional[int] = None):
        self.requested = requested
        self.available = available
        super().__init__(message)


class InvalidStateTransitionError(ConflictError):
    """Raised when an illegal reschedule state transition is attempted."""

    code = "invalid_transition"

    def __init__(self, from_state: str, to_state: str):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Illegal state transition attempted: {from_state} -> {to_state}")


class InternalError(BookingEngineError):
    """Unexpected failure; the surrounding transaction is rolled back."""
