from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..attendance.model import AttendanceRecord
from ..core.enums import SyncState
from .model import PendingIntent


class IntentStore(Protocol):
    """Client-side durable mapping local_id -> PendingIntent."""

    def add(self, intent: PendingIntent) -> PendingIntent:
        raise NotImplementedError

    def get(self, local_id: str) -> Optional[PendingIntent]:
        raise NotImplementedError

    def list_pending(self) -> Sequence[PendingIntent]:
        """PENDING intents in capture order (captured_at ascending)."""

        raise NotImplementedError

    def list_by_state(self, state: SyncState) -> Sequence[PendingIntent]:
        raise NotImplementedError

    def mark(self, local_id: str, state: SyncState, *, detail: Optional[str], resolved_at: datetime) -> bool:
        raise NotImplementedError

    def purge_synced(self) -> int:
        raise NotImplementedError

    def save_history(self, user_id: str, records: Sequence[AttendanceRecord], *, fetched_at: datetime) -> None:
        raise NotImplementedError

    def load_history(self, user_id: str) -> Sequence[AttendanceRecord]:
        raise NotImplementedError
