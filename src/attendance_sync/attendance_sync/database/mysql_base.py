from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import mysql.connector
from mysql.connector import errorcode

from ..core.exceptions import PersistenceError, StoreUnreachableError
from ..geo.model import Geofence
from .connection import DatabaseConnection

logger = logging.getLogger(__name__)

_UNREACHABLE_ERRNOS = {
    errorcode.CR_CONNECTION_ERROR,
    errorcode.CR_CONN_HOST_ERROR,
    errorcode.CR_UNKNOWN_HOST,
    errorcode.CR_SERVER_GONE_ERROR,
    errorcode.CR_SERVER_LOST,
}


def translate_error(exc: mysql.connector.Error) -> PersistenceError:
    """Map connector errors onto the domain's persistence taxonomy."""
    if isinstance(exc, (mysql.connector.InterfaceError, mysql.connector.OperationalError)):
        return StoreUnreachableError(str(exc))
    if getattr(exc, "errno", None) in _UNREACHABLE_ERRNOS:
        return StoreUnreachableError(str(exc))
    return PersistenceError(str(exc))


def _rollback_quietly(conn) -> None:
    try:
        conn.rollback()
    except mysql.connector.Error as e:
        logger.warning("Rollback failed: %s", e)


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True):
    """Yield (conn, cursor); commit on success, rollback on error.

    IntegrityError is re-raised untouched so repositories can turn a unique-key
    violation into a domain outcome. Other connector errors are translated.
    """
    try:
        conn = conn_factory.connect()
    except mysql.connector.Error as e:
        raise translate_error(e) from e

    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except mysql.connector.IntegrityError:
        _rollback_quietly(conn)
        raise
    except mysql.connector.Error as e:
        _rollback_quietly(conn)
        raise translate_error(e) from e
    except Exception:
        _rollback_quietly(conn)
        raise
    finally:
        conn.close()


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return list(rows or [])


def geofence_from_row(row: Dict[str, Any]) -> Optional[Geofence]:
    """Rebuild a Geofence from the three nullable geofence_* columns."""
    if row.get("geofence_radius_m") is None:
        return None
    return Geofence(
        center_lat=float(row["geofence_lat"]),
        center_lng=float(row["geofence_lng"]),
        radius_m=float(row["geofence_radius_m"]),
    )


def geofence_params(geofence: Optional[Geofence]) -> tuple:
    if geofence is None:
        return (None, None, None)
    return (geofence.center_lat, geofence.center_lng, geofence.radius_m)
