"""Error taxonomy shared by the stores, the gate and the HTTP layer."""
from __future__ import annotations

from typing import Any

from fastapi import status


class TaskflowError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        if message is not None:
            self.message = message

    def to_payload(self) -> dict[str, Any]:
        """Body returned to the client."""

        return {"message": self.message}


class ValidationError(TaskflowError):
    """Malformed or out-of-range input, with field-level detail."""

    status_code = status.HTTP_400_BAD_REQUEST
    message = "Validation failed"

    def __init__(self, errors: list[dict[str, str]]) -> None:
        super().__init__()
        self.errors = errors

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls([{"field": field, "message": message}])

    def to_payload(self) -> dict[str, Any]:
        return {"message": self.message, "errors": self.errors}


class DuplicateIdentity(TaskflowError):
    """Username or email already registered."""

    status_code = status.HTTP_400_BAD_REQUEST
    message = "User already exists"


class Unauthenticated(TaskflowError):
    """Missing, invalid, destroyed or expired session."""

    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Unauthorized"


class NotFoundOrForbidden(TaskflowError):
    """Record is absent or owned by someone else; the two are not told apart."""

    status_code = status.HTTP_404_NOT_FOUND
    message = "Not found"


class StoreFailure(TaskflowError):
    """The datastore failed. Logged where raised, never retried here."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Internal server error"
