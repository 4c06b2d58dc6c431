from __future__ import annotations

from typing import Optional, Protocol, Sequence

from ..core.enums import TokenStatus
from .model import Token


class TokenRepository(Protocol):
    """Repository interface for the `tokens` collection."""

    def get_by_id(self, token_id: str) -> Optional[Token]:
        raise NotImplementedError

    def create(self, token: Token) -> Token:
        raise NotImplementedError

    def update_status(self, token_id: str, status: TokenStatus) -> bool:
        raise NotImplementedError

    def list_for_session(self, session_id: str) -> Sequence[Token]:
        raise NotImplementedError

    def active_session_ids(self) -> Sequence[str]:
        """Sessions that currently have an ACTIVE token on record."""
        raise NotImplementedError
