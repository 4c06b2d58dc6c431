from __future__ import annotations

from enum import Enum


class TokenStatus(str, Enum):
    """Lifecycle of an attendance token.

    EXPIRED is normally derived from the clock; it is only stored once a token
    has been superseded by rotation.
    """

    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    REVOKED = "REVOKED"


class AttendanceStatus(str, Enum):
    """Status stored on an attendance record."""

    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    LATE = "LATE"


class SyncState(str, Enum):
    """Reconciliation state of an intent captured while offline."""

    PENDING = "PENDING"
    SYNCED = "SYNCED"
    REJECTED = "REJECTED"


class ErrorKind(str, Enum):
    """Every way a verification can fail to produce a new record."""

    INVALID_TOKEN = "INVALID_TOKEN"
    TOKEN_EXPIRED_OR_NOT_YET_VALID = "TOKEN_EXPIRED_OR_NOT_YET_VALID"
    OUT_OF_RANGE = "OUT_OF_RANGE"
    ALREADY_RECORDED = "ALREADY_RECORDED"
    UNAUTHENTICATED = "UNAUTHENTICATED"
    PERSISTENCE_FAILURE = "PERSISTENCE_FAILURE"
    UNREACHABLE = "UNREACHABLE"
