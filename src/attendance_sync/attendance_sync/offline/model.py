from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

from ..core.enums import SyncState
from ..geo.model import GeoPoint


@dataclass(frozen=True)
class PendingIntent:
    """A scan captured while the verification service was unreachable.

    Owned by the client until the server answers; the server's record is then
    authoritative.
    """

    local_id: str
    token_id: str
    user_id: str
    captured_at: datetime
    location: Optional[GeoPoint] = None
    sync_state: SyncState = SyncState.PENDING
    detail: Optional[str] = None
    resolved_at: Optional[datetime] = None

    def resolve(self, state: SyncState, *, detail: Optional[str], at: datetime) -> "PendingIntent":
        return replace(self, sync_state=state, detail=detail, resolved_at=at)
