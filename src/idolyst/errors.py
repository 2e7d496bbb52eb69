"""Domain exceptions raised by services and mapped to HTTP status codes by routers."""

from __future__ import annotations


class IdolystError(Exception):
    """Base class for all domain errors."""


class NotFoundError(IdolystError):
    """A referenced row does not exist (or is not visible to the caller)."""


class InsufficientXpError(IdolystError):
    """The user does not hold enough XP for the requested spend."""

    def __init__(self, available: int, required: int) -> None:
        self.available = available
        self.required = required
        super().__init__(f"Insufficient XP: have {available}, need {required}")


class ValidationFailedError(IdolystError):
    """Input rejected by a business rule (not by schema validation)."""

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class StorageError(IdolystError):
    """Object storage rejected or failed an upload."""


class ConflictError(IdolystError):
    """The write collides with existing state (a taken slot, a duplicate application)."""


class ForbiddenError(IdolystError):
    """The caller may see the row but not perform this action on it."""
