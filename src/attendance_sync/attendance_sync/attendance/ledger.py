from __future__ import annotations

import uuid
from datetime import datetime
from typing import Callable, Optional, Sequence

from ..common.datetime_utils import now_utc
from ..common.validators import require_non_empty
from ..core.constants import DEFAULT_HISTORY_LIMIT, MAX_HISTORY_LIMIT
from ..core.enums import AttendanceStatus
from ..geo.model import GeoPoint
from .model import AttendanceRecord
from .repository import AttendanceRepository


class AttendanceLedger:
    """Append-only attendance facts, at most one per (user_id, session_id)."""

    def __init__(self, attendance: AttendanceRepository, *, clock: Callable[[], datetime] = now_utc):
        self._attendance = attendance
        self._clock = clock

    def record_attendance(
        self,
        user_id: str,
        session_id: str,
        token_id: str,
        location: Optional[GeoPoint],
        observed_status: AttendanceStatus,
    ) -> AttendanceRecord:
        """Insert the record or raise DuplicateAttendanceError with the existing one."""
        record = AttendanceRecord(
            record_id=uuid.uuid4().hex,
            user_id=require_non_empty(user_id, "user_id"),
            session_id=require_non_empty(session_id, "session_id"),
            token_id=require_non_empty(token_id, "token_id"),
            timestamp=self._clock(),
            status=observed_status,
            location=location,
        )
        return self._attendance.insert_if_absent(record)

    def query_by_user(self, user_id: str, limit: int = DEFAULT_HISTORY_LIMIT) -> Sequence[AttendanceRecord]:
        """Newest first, capped at `limit` (never above MAX_HISTORY_LIMIT)."""
        capped = max(0, min(int(limit), MAX_HISTORY_LIMIT))
        if capped == 0:
            return []
        return list(self._attendance.get_recent_for_user(user_id, capped))[:capped]

    def query_by_session(self, session_id: str) -> Sequence[AttendanceRecord]:
        return self._attendance.list_for_session(session_id)
