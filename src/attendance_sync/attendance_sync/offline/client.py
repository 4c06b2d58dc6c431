"""Scanning client: the one place that decides online versus offline."""
from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Sequence

from ..attendance.model import AttendanceRecord
from ..common.datetime_utils import as_utc, now_utc
from ..core.constants import (
    DEFAULT_HISTORY_LIMIT,
    DEFAULT_SYNC_ATTEMPTS,
    DEFAULT_SYNC_BASE_DELAY_SECONDS,
    DEFAULT_VERIFY_TIMEOUT_SECONDS,
)
from ..core.enums import ErrorKind, SyncState
from ..core.exceptions import PersistenceError, ValidationError
from ..geo.model import GeoPoint
from ..tokens.payload import extract_token_id
from ..verification.result import VerificationResult
from .gateway import VerificationGateway
from .model import PendingIntent
from .reconciler import ReconcileReport, Reconciler
from .repository import IntentStore

logger = logging.getLogger(__name__)

PROVISIONAL_MESSAGE = "Recorded locally, will sync when the connection is back."


@dataclass(frozen=True)
class ScanOutcome:
    """Either a server answer or a provisional, locally queued intent."""

    result: Optional[VerificationResult] = None
    intent: Optional[PendingIntent] = None

    @property
    def provisional(self) -> bool:
        return self.intent is not None

    @property
    def message(self) -> str:
        if self.provisional:
            return PROVISIONAL_MESSAGE
        return self.result.message if self.result else ""


@dataclass(frozen=True)
class HistoryView:
    records: Sequence[AttendanceRecord]
    from_cache: bool


class ScanClient:
    def __init__(
        self,
        gateway: VerificationGateway,
        store: IntentStore,
        *,
        is_reachable: Callable[[], bool] = lambda: True,
        timeout: Optional[float] = DEFAULT_VERIFY_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = now_utc,
        reconciler: Optional[Reconciler] = None,
    ):
        self._gateway = gateway
        self._store = store
        self._is_reachable = is_reachable
        self._timeout = timeout
        self._clock = clock
        self._reconciler = reconciler or Reconciler(store, gateway, timeout=timeout, clock=clock)

    def submit(
        self,
        raw_payload: str,
        user_id: Optional[str],
        location: Optional[GeoPoint],
        *,
        captured_at: Optional[datetime] = None,
    ) -> ScanOutcome:
        user_id = (user_id or "").strip()
        if not user_id:
            return ScanOutcome(result=VerificationResult.failure(ErrorKind.UNAUTHENTICATED))
        try:
            token_id = extract_token_id(raw_payload)
        except ValidationError as e:
            return ScanOutcome(result=VerificationResult.failure(ErrorKind.INVALID_TOKEN, message=str(e)))
        if location is not None:
            try:
                location = GeoPoint.create(location.lat, location.lng, location.accuracy)
            except ValidationError as e:
                return ScanOutcome(
                    result=VerificationResult.failure(ErrorKind.OUT_OF_RANGE, message=f"Invalid location: {e}")
                )

        captured = as_utc(captured_at) if captured_at else self._clock()

        if not self._is_reachable():
            return self._queue(token_id, user_id, location, captured)

        result = self._gateway.verify(token_id, user_id, location, timeout=self._timeout)
        if result.error == ErrorKind.UNREACHABLE:
            return self._queue(token_id, user_id, location, captured)
        return ScanOutcome(result=result)

    def sync(
        self,
        *,
        max_attempts: int = DEFAULT_SYNC_ATTEMPTS,
        base_delay: float = DEFAULT_SYNC_BASE_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> ReconcileReport:
        """Drain the offline queue, backing off between halted attempts.

        When the service stays unreachable for every attempt the report is
        halted by UNREACHABLE, so `completed` is only True after a real drain.
        """
        pending = len(self._store.list_pending())
        if not pending:
            return ReconcileReport()
        report = ReconcileReport(halted_by=ErrorKind.UNREACHABLE, remaining=pending)
        for attempt in range(max(1, int(max_attempts))):
            if attempt:
                sleep(base_delay * (2 ** (attempt - 1)))
            if not self._is_reachable():
                continue
            report = self._reconciler.drain()
            if report.completed:
                break
        return report

    def pending_intents(self) -> Sequence[PendingIntent]:
        return self._store.list_pending()

    def rejected_intents(self) -> Sequence[PendingIntent]:
        """Intents the user must re-scan; they stay listed until purged."""
        return self._store.list_by_state(SyncState.REJECTED)

    def history(self, user_id: str, limit: int = DEFAULT_HISTORY_LIMIT) -> HistoryView:
        if self._is_reachable():
            try:
                records = list(self._gateway.history(user_id, limit, timeout=self._timeout))
            except PersistenceError as e:
                logger.info("History unavailable online, using cache: %s", e)
            else:
                self._store.save_history(user_id, records, fetched_at=self._clock())
                return HistoryView(records=records, from_cache=False)
        return HistoryView(records=list(self._store.load_history(user_id))[:limit], from_cache=True)

    def _queue(self, token_id: str, user_id: str, location: Optional[GeoPoint], captured: datetime) -> ScanOutcome:
        intent = PendingIntent(
            local_id=uuid.uuid4().hex,
            token_id=token_id,
            user_id=user_id,
            captured_at=captured,
            location=location,
        )
        self._store.add(intent)
        logger.info("Queued offline intent %s for token %s", intent.local_id, token_id)
        return ScanOutcome(intent=intent)
