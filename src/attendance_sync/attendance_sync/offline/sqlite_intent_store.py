"""Durable offline queue backed by a local SQLite file.

Survives process restarts, so unsynced attendance is not lost when the app
closes. Pass ":memory:" for a throwaway store.
"""
from __future__ import annotations

import json
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence

from ..attendance.model import AttendanceRecord
from ..common.datetime_utils import parse_iso_datetime
from ..core.enums import SyncState
from ..geo.model import GeoPoint
from ..verification.serialization import record_from_dict, record_to_dict
from .model import PendingIntent
from .repository import IntentStore

_SCHEMA = """
CREATE TABLE IF NOT EXISTS pending_intents (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    local_id TEXT NOT NULL UNIQUE,
    token_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    captured_at TEXT NOT NULL,
    captured_us INTEGER NOT NULL,
    location_lat REAL,
    location_lng REAL,
    location_accuracy REAL,
    sync_state TEXT NOT NULL DEFAULT 'PENDING',
    detail TEXT,
    resolved_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_pending_state_order ON pending_intents (sync_state, captured_us, seq);
CREATE TABLE IF NOT EXISTS history_cache (
    user_id TEXT PRIMARY KEY,
    payload TEXT NOT NULL,
    fetched_at TEXT NOT NULL
);
"""


def _epoch_us(value: datetime) -> int:
    return int(round(value.timestamp() * 1_000_000))


class SQLiteIntentStore(IntentStore):
    def __init__(self, path: str | Path = ":memory:"):
        self._path = str(path)
        if self._path != ":memory:":
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self._path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        with self._lock:
            self._conn.executescript(_SCHEMA)
            self._conn.commit()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @staticmethod
    def _row_to_intent(r: sqlite3.Row) -> PendingIntent:
        location = None
        if r["location_lat"] is not None and r["location_lng"] is not None:
            location = GeoPoint(lat=r["location_lat"], lng=r["location_lng"], accuracy=r["location_accuracy"])
        return PendingIntent(
            local_id=r["local_id"],
            token_id=r["token_id"],
            user_id=r["user_id"],
            captured_at=parse_iso_datetime(r["captured_at"]),
            location=location,
            sync_state=SyncState(r["sync_state"]),
            detail=r["detail"],
            resolved_at=parse_iso_datetime(r["resolved_at"]) if r["resolved_at"] else None,
        )

    def add(self, intent: PendingIntent) -> PendingIntent:
        loc = intent.location
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO pending_intents(
                    local_id, token_id, user_id, captured_at, captured_us,
                    location_lat, location_lng, location_accuracy, sync_state, detail
                )
                VALUES(?,?,?,?,?,?,?,?,?,?)
                """,
                (
                    intent.local_id,
                    intent.token_id,
                    intent.user_id,
                    intent.captured_at.isoformat(),
                    _epoch_us(intent.captured_at),
                    loc.lat if loc else None,
                    loc.lng if loc else None,
                    loc.accuracy if loc else None,
                    intent.sync_state.value,
                    intent.detail,
                ),
            )
            self._conn.commit()
        return intent

    def get(self, local_id: str) -> Optional[PendingIntent]:
        with self._lock:
            r = self._conn.execute("SELECT * FROM pending_intents WHERE local_id=?", (local_id,)).fetchone()
        return self._row_to_intent(r) if r else None

    def list_pending(self) -> Sequence[PendingIntent]:
        return self.list_by_state(SyncState.PENDING)

    def list_by_state(self, state: SyncState) -> Sequence[PendingIntent]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM pending_intents WHERE sync_state=? ORDER BY captured_us ASC, seq ASC",
                (state.value,),
            ).fetchall()
        return [self._row_to_intent(r) for r in rows]

    def mark(self, local_id: str, state: SyncState, *, detail: Optional[str], resolved_at: datetime) -> bool:
        with self._lock:
            cur = self._conn.execute(
                "UPDATE pending_intents SET sync_state=?, detail=?, resolved_at=? WHERE local_id=?",
                (state.value, detail, resolved_at.isoformat(), local_id),
            )
            self._conn.commit()
            return cur.rowcount > 0

    def purge_synced(self) -> int:
        with self._lock:
            cur = self._conn.execute("DELETE FROM pending_intents WHERE sync_state=?", (SyncState.SYNCED.value,))
            self._conn.commit()
            return cur.rowcount

    def save_history(self, user_id: str, records: Sequence[AttendanceRecord], *, fetched_at: datetime) -> None:
        payload = json.dumps([record_to_dict(r) for r in records])
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO history_cache(user_id, payload, fetched_at) VALUES(?,?,?)
                ON CONFLICT(user_id) DO UPDATE SET payload=excluded.payload, fetched_at=excluded.fetched_at
                """,
                (user_id, payload, fetched_at.isoformat()),
            )
            self._conn.commit()

    def load_history(self, user_id: str) -> Sequence[AttendanceRecord]:
        with self._lock:
            r = self._conn.execute("SELECT payload FROM history_cache WHERE user_id=?", (user_id,)).fetchone()
        if not r:
            return []
        return [record_from_dict(item) for item in json.loads(r["payload"])]
