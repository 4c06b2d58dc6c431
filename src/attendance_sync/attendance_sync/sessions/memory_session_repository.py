from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime
from typing import Optional, Sequence

from ..core.exceptions import ValidationError
from .model import Session
from .repository import SessionRepository


class InMemorySessionRepository(SessionRepository):
    def __init__(self):
        self._lock = threading.Lock()
        self._by_id: dict[str, Session] = {}

    def get_by_id(self, session_id: str) -> Optional[Session]:
        return self._by_id.get(session_id)

    def create(self, session: Session) -> Session:
        with self._lock:
            if session.session_id in self._by_id:
                raise ValidationError("Session id already exists")
            self._by_id[session.session_id] = session
        return session

    def increment_attendee_count(self, session_id: str) -> bool:
        with self._lock:
            session = self._by_id.get(session_id)
            if session is None:
                return False
            self._by_id[session_id] = replace(session, attendee_count=session.attendee_count + 1)
            return True

    def mark_ended(self, session_id: str, ended_at: datetime) -> bool:
        with self._lock:
            session = self._by_id.get(session_id)
            if session is None or session.ended_at is not None:
                return False
            self._by_id[session_id] = replace(session, ended_at=ended_at)
            return True

    def list_for_organizer(self, organizer_id: str) -> Sequence[Session]:
        items = [s for s in self._by_id.values() if s.organizer_id == organizer_id]
        items.sort(key=lambda s: s.start_time, reverse=True)
        return items
