from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from ..common.datetime_utils import now_utc
from ..core.constants import DEFAULT_VERIFY_TIMEOUT_SECONDS
from ..core.enums import ErrorKind, SyncState
from .gateway import VerificationGateway
from .model import PendingIntent
from .repository import IntentStore

logger = logging.getLogger(__name__)


@dataclass
class ReconcileReport:
    synced: list[PendingIntent] = field(default_factory=list)
    rejected: list[PendingIntent] = field(default_factory=list)
    halted_by: Optional[ErrorKind] = None
    remaining: int = 0

    @property
    def completed(self) -> bool:
        return self.halted_by is None


class Reconciler:
    """Replays offline intents through the normal verify path.

    Intents go one at a time in capture order. A recoverable failure stops the
    drain where it is, so the next drain resumes with the same intent.
    """

    def __init__(
        self,
        store: IntentStore,
        gateway: VerificationGateway,
        *,
        timeout: Optional[float] = DEFAULT_VERIFY_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = now_utc,
    ):
        self._store = store
        self._gateway = gateway
        self._timeout = timeout
        self._clock = clock
        self._drain_lock = threading.Lock()

    def drain(self) -> ReconcileReport:
        with self._drain_lock:
            report = ReconcileReport()
            pending = list(self._store.list_pending())

            for index, intent in enumerate(pending):
                result = self._gateway.verify(intent.token_id, intent.user_id, intent.location, timeout=self._timeout)

                if result.accepted or result.error == ErrorKind.ALREADY_RECORDED:
                    resolved = self._resolve(intent, SyncState.SYNCED, result.message)
                    report.synced.append(resolved)
                    continue

                if result.recoverable:
                    report.halted_by = result.error
                    report.remaining = len(pending) - index
                    logger.info(
                        "Reconciliation paused at intent %s (%s); %d intent(s) left",
                        intent.local_id,
                        result.error.value,
                        report.remaining,
                    )
                    return report

                resolved = self._resolve(intent, SyncState.REJECTED, result.message or result.error.value)
                report.rejected.append(resolved)
                logger.info("Offline intent %s rejected: %s", intent.local_id, result.error.value)

            return report

    def _resolve(self, intent: PendingIntent, state: SyncState, detail: Optional[str]) -> PendingIntent:
        at = self._clock()
        self._store.mark(intent.local_id, state, detail=detail, resolved_at=at)
        return intent.resolve(state, detail=detail, at=at)
