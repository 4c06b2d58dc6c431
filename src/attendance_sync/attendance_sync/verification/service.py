"""Verification Service: the single entry point scanning clients call.

Order of checks, stopping at the first failure:
    identity -> token lookup -> validity window -> geofence -> ledger insert.
Only the ledger insert and the attendee counter have side effects.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from datetime import datetime
from typing import Callable, Optional, Sequence

from ..attendance.factory import AttendanceStrategyFactory
from ..attendance.ledger import AttendanceLedger
from ..attendance.model import AttendanceRecord
from ..common.datetime_utils import now_utc
from ..core.constants import DEFAULT_HISTORY_LIMIT, DEFAULT_LATE_GRACE_MINUTES
from ..core.enums import ErrorKind
from ..core.exceptions import (
    DomainError,
    DuplicateAttendanceError,
    PersistenceError,
    StoreUnreachableError,
    ValidationError,
)
from ..geo.model import GeoPoint
from ..geo.proximity import within_geofence
from ..sessions.repository import SessionRepository
from ..tokens.model import Token
from ..tokens.payload import extract_token_id
from ..tokens.repository import TokenRepository
from .result import BUSINESS_OUTCOMES, VerificationResult

logger = logging.getLogger(__name__)


def precheck(token: Optional[Token], location: Optional[GeoPoint], now: datetime) -> Optional[VerificationResult]:
    """Pure part of verification; returns a failure or None when the scan may be recorded."""
    if token is None:
        return VerificationResult.failure(ErrorKind.INVALID_TOKEN)
    if not token.is_valid_at(now):
        return VerificationResult.failure(ErrorKind.TOKEN_EXPIRED_OR_NOT_YET_VALID)

    proximity = within_geofence(token.geofence, location)
    if not proximity.within:
        message = None
        if proximity.distance_m is None:
            message = "Location is required for this session. Please enable location services."
        return VerificationResult.failure(ErrorKind.OUT_OF_RANGE, distance_m=proximity.distance_m, message=message)
    return None


class VerificationService:
    def __init__(
        self,
        tokens: TokenRepository,
        sessions: SessionRepository,
        ledger: AttendanceLedger,
        *,
        strategy_factory: AttendanceStrategyFactory | None = None,
        grace_minutes: int = DEFAULT_LATE_GRACE_MINUTES,
        clock: Callable[[], datetime] = now_utc,
        max_workers: int = 8,
    ):
        self._tokens = tokens
        self._sessions = sessions
        self._ledger = ledger
        self._factory = strategy_factory or AttendanceStrategyFactory()
        self._grace_minutes = int(grace_minutes)
        self._clock = clock
        self._max_workers = int(max_workers)
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()

    def verify(
        self,
        token_id: str,
        user_id: Optional[str],
        location: Optional[GeoPoint],
        *,
        timeout: Optional[float] = None,
    ) -> VerificationResult:
        """Verify a scan and record attendance. Never raises.

        With a timeout the attempt runs on a worker thread; when it does not
        finish in time the caller gets PERSISTENCE_FAILURE instead of waiting.
        """
        if timeout is None:
            return self._verify_guarded(token_id, user_id, location)

        future = self._get_executor().submit(self._verify_guarded, token_id, user_id, location)
        try:
            return future.result(timeout=timeout)
        except FutureTimeout:
            logger.warning("Verification of token %s for user %s timed out after %.1fs", token_id, user_id, timeout)
            return VerificationResult.failure(
                ErrorKind.PERSISTENCE_FAILURE,
                message="Attendance service timed out. Please try again.",
            )

    def verify_scan(
        self,
        raw_payload: str,
        user_id: Optional[str],
        location: Optional[GeoPoint],
        *,
        timeout: Optional[float] = None,
    ) -> VerificationResult:
        """Same as verify() but starting from the decoded QR payload."""
        if not (user_id or "").strip():
            return VerificationResult.failure(ErrorKind.UNAUTHENTICATED)
        try:
            token_id = extract_token_id(raw_payload)
        except ValidationError as e:
            return VerificationResult.failure(ErrorKind.INVALID_TOKEN, message=str(e))
        return self.verify(token_id, user_id, location, timeout=timeout)

    def history(self, user_id: str, limit: int = DEFAULT_HISTORY_LIMIT) -> Sequence[AttendanceRecord]:
        return self._ledger.query_by_user(user_id, limit)

    def shutdown(self) -> None:
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False)

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="verify")
            return self._executor

    def _verify_guarded(self, token_id: str, user_id: Optional[str], location: Optional[GeoPoint]) -> VerificationResult:
        try:
            return self._verify(token_id, user_id, location)
        except StoreUnreachableError as e:
            logger.warning("Store unreachable while verifying token %s: %s", token_id, e)
            return VerificationResult.failure(ErrorKind.UNREACHABLE)
        except PersistenceError as e:
            logger.error("Persistence failure while verifying token %s: %s", token_id, e)
            return VerificationResult.failure(ErrorKind.PERSISTENCE_FAILURE)
        except ValidationError as e:
            return VerificationResult.failure(ErrorKind.INVALID_TOKEN, message=str(e))
        except Exception:
            logger.exception("Unexpected error while verifying token %s", token_id)
            return VerificationResult.failure(ErrorKind.PERSISTENCE_FAILURE)

    def _verify(self, token_id: str, user_id: Optional[str], location: Optional[GeoPoint]) -> VerificationResult:
        user_id = (user_id or "").strip()
        if not user_id:
            return VerificationResult.failure(ErrorKind.UNAUTHENTICATED)

        token_id = (token_id or "").strip()
        token = self._tokens.get_by_id(token_id) if token_id else None
        now = self._clock()

        rejected = precheck(token, location, now)
        if rejected is not None:
            level = logging.INFO if rejected.error in BUSINESS_OUTCOMES else logging.WARNING
            logger.log(level, "Scan by %s on token %s not accepted: %s", user_id, token_id, rejected.error.value)
            return rejected

        session = self._sessions.get_by_id(token.session_id)
        strategy = self._factory.for_scan(now=now, session=session, grace_minutes=self._grace_minutes)
        decision = strategy.decide(now=now, session=session, grace_minutes=self._grace_minutes)

        try:
            record = self._ledger.record_attendance(user_id, token.session_id, token.token_id, location, decision.status)
        except DuplicateAttendanceError as e:
            logger.info("User %s already recorded for session %s", user_id, token.session_id)
            return VerificationResult.failure(ErrorKind.ALREADY_RECORDED, existing_timestamp=e.existing_timestamp)

        self._bump_attendee_count(token.session_id)
        logger.info(
            "Accepted attendance for user %s in session %s (%s%s)",
            user_id,
            token.session_id,
            decision.status.value,
            f", {decision.note}" if decision.note else "",
        )
        return VerificationResult.accepted_with(record)

    def _bump_attendee_count(self, session_id: str) -> None:
        # The ledger is the source of truth; counter drift is tolerated.
        try:
            self._sessions.increment_attendee_count(session_id)
        except DomainError as e:
            logger.warning("Could not bump attendee count for session %s: %s", session_id, e)
