from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..geo.model import Geofence


@dataclass(frozen=True)
class Session:
    """Domain entity: a class/event attendance is taken for."""

    session_id: str
    title: str
    start_time: datetime
    end_time: datetime
    location_name: Optional[str] = None
    geofence: Optional[Geofence] = None
    organizer_id: Optional[str] = None
    attendee_count: int = 0
    # Set when the organizer ends the session early; never cleared.
    ended_at: Optional[datetime] = None

    def has_ended(self, instant: datetime) -> bool:
        return self.ended_at is not None or instant > self.end_time
