from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

import mysql.connector

from ..common.datetime_utils import as_utc, to_naive_utc
from ..core.exceptions import ValidationError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, geofence_from_row, geofence_params
from .model import Session
from .repository import SessionRepository

_COLUMNS = """
    session_id, title, start_time, end_time, location_name,
    geofence_lat, geofence_lng, geofence_radius_m, organizer_id, attendee_count, ended_at
"""


class MySQLSessionRepository(SessionRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    @staticmethod
    def _row_to_session(r) -> Session:
        return Session(
            session_id=str(r["session_id"]),
            title=r["title"],
            start_time=as_utc(r["start_time"]),
            end_time=as_utc(r["end_time"]),
            location_name=r.get("location_name"),
            geofence=geofence_from_row(r),
            organizer_id=r.get("organizer_id"),
            attendee_count=int(r.get("attendee_count") or 0),
            ended_at=as_utc(r["ended_at"]) if r.get("ended_at") else None,
        )

    def get_by_id(self, session_id: str) -> Optional[Session]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM sessions WHERE session_id=%s", (session_id,))
            r = fetchone(cur)
            return self._row_to_session(r) if r else None

    def create(self, session: Session) -> Session:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO sessions(
                        session_id, title, start_time, end_time, location_name,
                        geofence_lat, geofence_lng, geofence_radius_m, organizer_id, attendee_count
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (
                        session.session_id,
                        session.title,
                        to_naive_utc(session.start_time),
                        to_naive_utc(session.end_time),
                        session.location_name,
                        *geofence_params(session.geofence),
                        session.organizer_id,
                        int(session.attendee_count),
                    ),
                )
        except mysql.connector.IntegrityError:
            raise ValidationError("Session id already exists")
        return session

    def increment_attendee_count(self, session_id: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE sessions SET attendee_count = attendee_count + 1 WHERE session_id=%s",
                (session_id,),
            )
            return cur.rowcount > 0

    def mark_ended(self, session_id: str, ended_at: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE sessions SET ended_at = COALESCE(ended_at, %s) WHERE session_id=%s",
                (to_naive_utc(ended_at), session_id),
            )
            return cur.rowcount > 0

    def list_for_organizer(self, organizer_id: str) -> Sequence[Session]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM sessions WHERE organizer_id=%s ORDER BY start_time DESC",
                (organizer_id,),
            )
            return [self._row_to_session(r) for r in fetchall(cur)]
