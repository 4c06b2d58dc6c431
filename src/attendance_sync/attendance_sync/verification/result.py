from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..attendance.model import AttendanceRecord
from ..core.enums import ErrorKind

_MESSAGES = {
    ErrorKind.INVALID_TOKEN: "This QR code is not recognised. Please scan the code currently on display.",
    ErrorKind.TOKEN_EXPIRED_OR_NOT_YET_VALID: "This QR code has expired or is not active yet. Please scan the fresh code.",
    ErrorKind.OUT_OF_RANGE: "You are not at the session location.",
    ErrorKind.ALREADY_RECORDED: "Your attendance for this session is already marked.",
    ErrorKind.UNAUTHENTICATED: "Please sign in to record attendance.",
    ErrorKind.PERSISTENCE_FAILURE: "Attendance could not be saved. Please try again.",
    ErrorKind.UNREACHABLE: "The attendance service is unreachable.",
}

# Outcomes the user simply needs to be told about; nothing went wrong.
BUSINESS_OUTCOMES = frozenset({ErrorKind.ALREADY_RECORDED, ErrorKind.OUT_OF_RANGE})

# Failures worth retrying later; everything else needs a fresh scan.
RECOVERABLE = frozenset({ErrorKind.PERSISTENCE_FAILURE, ErrorKind.UNREACHABLE})


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of one verification attempt.

    `error` is None exactly when the attempt was accepted and `record` is set.
    """

    error: Optional[ErrorKind] = None
    record: Optional[AttendanceRecord] = None
    existing_timestamp: Optional[datetime] = None
    distance_m: Optional[float] = None
    message: str = ""

    @property
    def accepted(self) -> bool:
        return self.error is None

    @property
    def recoverable(self) -> bool:
        return self.error in RECOVERABLE

    @classmethod
    def accepted_with(cls, record: AttendanceRecord) -> "VerificationResult":
        return cls(record=record, message=f"Attendance recorded at {record.timestamp.strftime('%H:%M')}")

    @classmethod
    def failure(
        cls,
        kind: ErrorKind,
        *,
        existing_timestamp: Optional[datetime] = None,
        distance_m: Optional[float] = None,
        message: Optional[str] = None,
    ) -> "VerificationResult":
        text = message or _MESSAGES[kind]
        if kind == ErrorKind.OUT_OF_RANGE and distance_m is not None and message is None:
            text = f"{text} (distance: {distance_m:.0f}m)"
        return cls(error=kind, existing_timestamp=existing_timestamp, distance_m=distance_m, message=text)
