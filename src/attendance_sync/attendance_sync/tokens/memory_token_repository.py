from __future__ import annotations

import threading
from typing import Optional, Sequence

from ..core.enums import TokenStatus
from ..core.exceptions import ValidationError
from .model import Token
from .repository import TokenRepository


class InMemoryTokenRepository(TokenRepository):
    def __init__(self):
        self._lock = threading.Lock()
        self._by_id: dict[str, Token] = {}

    def get_by_id(self, token_id: str) -> Optional[Token]:
        return self._by_id.get(token_id)

    def create(self, token: Token) -> Token:
        with self._lock:
            if token.token_id in self._by_id:
                raise ValidationError("Token id already exists")
            self._by_id[token.token_id] = token
        return token

    def update_status(self, token_id: str, status: TokenStatus) -> bool:
        with self._lock:
            token = self._by_id.get(token_id)
            if token is None:
                return False
            self._by_id[token_id] = token.with_status(status)
            return True

    def list_for_session(self, session_id: str) -> Sequence[Token]:
        items = [t for t in self._by_id.values() if t.session_id == session_id]
        items.sort(key=lambda t: t.valid_from)
        return items

    def active_session_ids(self) -> Sequence[str]:
        with self._lock:
            return sorted({t.session_id for t in self._by_id.values() if t.status == TokenStatus.ACTIVE})
