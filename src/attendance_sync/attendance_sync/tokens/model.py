from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

from ..core.enums import TokenStatus
from ..geo.model import Geofence


@dataclass(frozen=True)
class Token:
    """Domain entity: time-boxed credential for one session.

    The token id is also the string encoded in the QR symbol.
    """

    token_id: str
    session_id: str
    valid_from: datetime
    valid_until: datetime
    geofence: Optional[Geofence] = None
    status: TokenStatus = TokenStatus.ACTIVE
    created_at: Optional[datetime] = None

    def is_valid_at(self, instant: datetime) -> bool:
        """Inclusive window check; expiry is always derived from the clock."""
        return self.status == TokenStatus.ACTIVE and self.valid_from <= instant <= self.valid_until

    def status_at(self, instant: datetime) -> TokenStatus:
        if self.status == TokenStatus.ACTIVE and instant > self.valid_until:
            return TokenStatus.EXPIRED
        return self.status

    @property
    def duration_seconds(self) -> int:
        return int((self.valid_until - self.valid_from).total_seconds())

    def with_status(self, status: TokenStatus) -> "Token":
        return replace(self, status=status)
