from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from ..sessions.model import Session
from .strategies.base import AttendanceStrategy
from .strategies.late_strategy import LateStrategy
from .strategies.present_strategy import PresentStrategy


@dataclass
class AttendanceStrategyFactory:
    """Factory Pattern: choose appropriate strategy based on rules."""

    def for_scan(self, *, now: datetime, session: Optional[Session], grace_minutes: int) -> AttendanceStrategy:
        if not session:
            return PresentStrategy()

        if now <= session.start_time + timedelta(minutes=grace_minutes):
            return PresentStrategy()
        return LateStrategy()
