from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Optional, Sequence

from ..common.datetime_utils import as_utc
from ..common.validators import require_non_empty
from ..core.exceptions import NotFoundError, ValidationError
from ..geo.model import Geofence
from .model import Session
from .repository import SessionRepository

logger = logging.getLogger(__name__)


class SessionService:
    def __init__(self, sessions: SessionRepository):
        self._sessions = sessions

    def create_session(
        self,
        *,
        title: str,
        start_time: datetime,
        end_time: datetime,
        location_name: Optional[str] = None,
        geofence: Optional[Geofence] = None,
        organizer_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> Session:
        title = require_non_empty(title, "title")
        start = as_utc(start_time)
        end = as_utc(end_time)
        if start is None or end is None:
            raise ValidationError("start_time and end_time are required")
        if start >= end:
            raise ValidationError("start_time must be before end_time")

        session = Session(
            session_id=(session_id or "").strip() or uuid.uuid4().hex,
            title=title,
            start_time=start,
            end_time=end,
            location_name=(location_name or "").strip() or None,
            geofence=geofence,
            organizer_id=(organizer_id or "").strip() or None,
        )
        created = self._sessions.create(session)
        logger.info("Created session %s (%s -> %s)", created.session_id, start.isoformat(), end.isoformat())
        return created

    def get_session(self, session_id: str) -> Session:
        session = self._sessions.get_by_id(session_id)
        if not session:
            raise NotFoundError("Session not found")
        return session

    def list_for_organizer(self, organizer_id: str) -> Sequence[Session]:
        return self._sessions.list_for_organizer(require_non_empty(organizer_id, "organizer_id"))
