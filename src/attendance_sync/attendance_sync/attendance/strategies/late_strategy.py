from __future__ import annotations

from datetime import datetime
from typing import Optional

from ...core.enums import AttendanceStatus
from ...sessions.model import Session
from .base import AttendanceStrategy, StatusDecision


class LateStrategy(AttendanceStrategy):
    """Scan after session start + grace."""

    def decide(self, *, now: datetime, session: Optional[Session], grace_minutes: int) -> StatusDecision:
        minutes_late = 0
        if session is not None:
            minutes_late = int((now - session.start_time).total_seconds() // 60)
        return StatusDecision(status=AttendanceStatus.LATE, note=f"{minutes_late} min after start")
