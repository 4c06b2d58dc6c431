from __future__ import annotations

import threading
from typing import Optional, Sequence

from ..core.exceptions import DuplicateAttendanceError
from .model import AttendanceRecord
from .repository import AttendanceRepository


class InMemoryAttendanceRepository(AttendanceRepository):
    """Process-local ledger store; the lock makes insert-if-absent atomic."""

    def __init__(self):
        self._lock = threading.Lock()
        self._by_user_session: dict[tuple[str, str], AttendanceRecord] = {}

    def insert_if_absent(self, record: AttendanceRecord) -> AttendanceRecord:
        key = (record.user_id, record.session_id)
        with self._lock:
            existing = self._by_user_session.get(key)
            if existing is not None:
                raise DuplicateAttendanceError(existing)
            self._by_user_session[key] = record
        return record

    def get_for_user_and_session(self, user_id: str, session_id: str) -> Optional[AttendanceRecord]:
        return self._by_user_session.get((user_id, session_id))

    def get_recent_for_user(self, user_id: str, limit: int) -> Sequence[AttendanceRecord]:
        with self._lock:
            items = [r for r in self._by_user_session.values() if r.user_id == user_id]
        items.sort(key=lambda r: r.timestamp, reverse=True)
        return items[: max(0, int(limit))]

    def list_for_session(self, session_id: str) -> Sequence[AttendanceRecord]:
        with self._lock:
            items = [r for r in self._by_user_session.values() if r.session_id == session_id]
        items.sort(key=lambda r: r.timestamp)
        return items

    def count(self) -> int:
        return len(self._by_user_session)
