from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..attendance.model import AttendanceRecord


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class NotFoundError(DomainError):
    """Raised when a referenced session or token does not exist."""


class DuplicateAttendanceError(DomainError):
    """Raised when a user already has a record for the session."""

    def __init__(self, existing: "AttendanceRecord"):
        super().__init__(f"Attendance already recorded at {existing.timestamp.isoformat()}")
        self.existing = existing

    @property
    def existing_timestamp(self):
        return self.existing.timestamp


class PersistenceError(DomainError):
    """Raised when the store rejects or fails a read/write."""


class StoreUnreachableError(PersistenceError):
    """Raised when the store cannot be reached at all (network, timeout)."""
