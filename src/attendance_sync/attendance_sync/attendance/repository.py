from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import AttendanceRecord


class AttendanceRepository(Protocol):
    def insert_if_absent(self, record: AttendanceRecord) -> AttendanceRecord:
        """Atomically insert unless (user_id, session_id) already exists.

        Raises DuplicateAttendanceError carrying the existing record otherwise.
        Implementations must not read-then-write.
        """

        raise NotImplementedError

    def get_for_user_and_session(self, user_id: str, session_id: str) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def get_recent_for_user(self, user_id: str, limit: int) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def list_for_session(self, session_id: str) -> Sequence[AttendanceRecord]:
        raise NotImplementedError
