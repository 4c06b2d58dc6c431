from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import AttendanceStatus
from ..geo.model import GeoPoint


@dataclass(frozen=True)
class AttendanceRecord:
    """Domain entity: one accepted attendance per (user_id, session_id).

    Immutable once created; the ledger never updates or deletes it.
    """

    record_id: str
    user_id: str
    session_id: str
    token_id: str
    timestamp: datetime
    status: AttendanceStatus
    location: Optional[GeoPoint] = None
