from __future__ import annotations

from typing import Optional, Sequence

import mysql.connector

from ..common.datetime_utils import as_utc, to_naive_utc
from ..core.constants import MYSQL_DUPLICATE_KEY_ERRNO
from ..core.enums import AttendanceStatus
from ..core.exceptions import DuplicateAttendanceError, PersistenceError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from ..geo.model import GeoPoint
from .model import AttendanceRecord
from .repository import AttendanceRepository

_COLUMNS = """
    record_id, user_id, session_id, token_id, recorded_at, status,
    location_lat, location_lng, location_accuracy
"""


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    @staticmethod
    def _row_to_record(r) -> AttendanceRecord:
        location = None
        if r.get("location_lat") is not None and r.get("location_lng") is not None:
            location = GeoPoint(
                lat=float(r["location_lat"]),
                lng=float(r["location_lng"]),
                accuracy=float(r["location_accuracy"]) if r.get("location_accuracy") is not None else None,
            )
        return AttendanceRecord(
            record_id=str(r["record_id"]),
            user_id=str(r["user_id"]),
            session_id=str(r["session_id"]),
            token_id=str(r["token_id"]),
            timestamp=as_utc(r["recorded_at"]),
            status=AttendanceStatus(r["status"]),
            location=location,
        )

    def insert_if_absent(self, record: AttendanceRecord) -> AttendanceRecord:
        loc = record.location
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO attendance_records(
                        record_id, user_id, session_id, token_id, recorded_at, status,
                        location_lat, location_lng, location_accuracy
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (
                        record.record_id,
                        record.user_id,
                        record.session_id,
                        record.token_id,
                        to_naive_utc(record.timestamp),
                        record.status.value,
                        loc.lat if loc else None,
                        loc.lng if loc else None,
                        loc.accuracy if loc else None,
                    ),
                )
        except mysql.connector.IntegrityError as e:
            if getattr(e, "errno", None) != MYSQL_DUPLICATE_KEY_ERRNO:
                raise PersistenceError(str(e)) from e
            existing = self.get_for_user_and_session(record.user_id, record.session_id)
            if existing is None:
                # Unique violation on record_id rather than the user/session key.
                raise PersistenceError(str(e)) from e
            raise DuplicateAttendanceError(existing) from e
        return record

    def get_for_user_and_session(self, user_id: str, session_id: str) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM attendance_records WHERE user_id=%s AND session_id=%s",
                (user_id, session_id),
            )
            r = fetchone(cur)
            return self._row_to_record(r) if r else None

    def get_recent_for_user(self, user_id: str, limit: int) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_records
                WHERE user_id=%s
                ORDER BY recorded_at DESC
                LIMIT %s
                """,
                (user_id, int(limit)),
            )
            return [self._row_to_record(r) for r in fetchall(cur)]

    def list_for_session(self, session_id: str) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM attendance_records WHERE session_id=%s ORDER BY recorded_at ASC",
                (session_id,),
            )
            return [self._row_to_record(r) for r in fetchall(cur)]
