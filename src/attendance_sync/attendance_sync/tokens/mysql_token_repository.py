from __future__ import annotations

from typing import Optional, Sequence

import mysql.connector

from ..common.datetime_utils import as_utc, to_naive_utc
from ..core.enums import TokenStatus
from ..core.exceptions import ValidationError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, geofence_from_row, geofence_params
from .model import Token
from .repository import TokenRepository

_COLUMNS = """
    token_id, session_id, valid_from, valid_until,
    geofence_lat, geofence_lng, geofence_radius_m, status, created_at
"""


class MySQLTokenRepository(TokenRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    @staticmethod
    def _row_to_token(r) -> Token:
        return Token(
            token_id=str(r["token_id"]),
            session_id=str(r["session_id"]),
            valid_from=as_utc(r["valid_from"]),
            valid_until=as_utc(r["valid_until"]),
            geofence=geofence_from_row(r),
            status=TokenStatus(r["status"]),
            created_at=as_utc(r.get("created_at")),
        )

    def get_by_id(self, token_id: str) -> Optional[Token]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM tokens WHERE token_id=%s", (token_id,))
            r = fetchone(cur)
            return self._row_to_token(r) if r else None

    def create(self, token: Token) -> Token:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO tokens(
                        token_id, session_id, valid_from, valid_until,
                        geofence_lat, geofence_lng, geofence_radius_m, status
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (
                        token.token_id,
                        token.session_id,
                        to_naive_utc(token.valid_from),
                        to_naive_utc(token.valid_until),
                        *geofence_params(token.geofence),
                        token.status.value,
                    ),
                )
        except mysql.connector.IntegrityError:
            raise ValidationError("Token id already exists or session is unknown")
        return token

    def update_status(self, token_id: str, status: TokenStatus) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE tokens SET status=%s WHERE token_id=%s", (status.value, token_id))
            return cur.rowcount > 0

    def list_for_session(self, session_id: str) -> Sequence[Token]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM tokens WHERE session_id=%s ORDER BY valid_from ASC",
                (session_id,),
            )
            return [self._row_to_token(r) for r in fetchall(cur)]

    def active_session_ids(self) -> Sequence[str]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT DISTINCT session_id FROM tokens WHERE status=%s ORDER BY session_id",
                (TokenStatus.ACTIVE.value,),
            )
            return [str(r["session_id"]) for r in fetchall(cur)]
