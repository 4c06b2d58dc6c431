from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from .model import Session


class SessionRepository(Protocol):
    """Repository interface for the `sessions` collection.

    The attendee counter is a cache; the attendance ledger stays the source of truth.
    """

    def get_by_id(self, session_id: str) -> Optional[Session]:
        raise NotImplementedError

    def create(self, session: Session) -> Session:
        raise NotImplementedError

    def increment_attendee_count(self, session_id: str) -> bool:
        raise NotImplementedError

    def mark_ended(self, session_id: str, ended_at: datetime) -> bool:
        """Record that the session has ended; False when it was already marked."""
        raise NotImplementedError

    def list_for_organizer(self, organizer_id: str) -> Sequence[Session]:
        raise NotImplementedError
