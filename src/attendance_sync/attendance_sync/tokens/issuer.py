"""Token issuing and rotation.

The issuer owns the "currently active token per session" state. Rotation is the
only writer of that state and is serialized per session; different sessions
never contend. Ending a session is persisted on the session row, so an ended
session stays ended across restarts and between processes. Scheduling rotation is left to the caller (see RotationWorker).
"""
from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timedelta
from typing import Callable, Optional, Sequence

from ..common.datetime_utils import now_utc
from ..common.validators import require_positive
from ..core.constants import DEFAULT_TOKEN_DURATION_SECONDS
from ..core.enums import TokenStatus
from ..core.exceptions import DomainError, NotFoundError, ValidationError
from ..geo.model import Geofence
from ..sessions.model import Session
from ..sessions.repository import SessionRepository
from .model import Token
from .repository import TokenRepository

logger = logging.getLogger(__name__)


class ActiveTokenStore:
    """Keyed store: session_id -> active Token, plus sessions that have ended."""

    def __init__(self):
        self._guard = threading.Lock()
        self._tokens: dict[str, Token] = {}
        self._ended: set[str] = set()
        self._locks: dict[str, threading.Lock] = {}

    def lock_for(self, session_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(session_id)
            if lock is None:
                lock = self._locks[session_id] = threading.Lock()
            return lock

    def get(self, session_id: str) -> Optional[Token]:
        return self._tokens.get(session_id)

    def put(self, session_id: str, token: Token) -> None:
        with self._guard:
            self._tokens[session_id] = token

    def end(self, session_id: str) -> None:
        with self._guard:
            self._tokens.pop(session_id, None)
            self._ended.add(session_id)

    def is_ended(self, session_id: str) -> bool:
        return session_id in self._ended

    def session_ids(self) -> list[str]:
        with self._guard:
            return list(self._tokens.keys())


class TokenIssuer:
    def __init__(
        self,
        tokens: TokenRepository,
        sessions: SessionRepository,
        *,
        active: Optional[ActiveTokenStore] = None,
        default_duration_seconds: int = DEFAULT_TOKEN_DURATION_SECONDS,
        clock: Callable[[], datetime] = now_utc,
    ):
        self._tokens = tokens
        self._sessions = sessions
        self._active = active or ActiveTokenStore()
        self._default_duration = require_positive(default_duration_seconds, "default_duration_seconds")
        self._clock = clock

    def _require_session(self, session_id: str) -> Session:
        session = self._sessions.get_by_id(session_id)
        if not session:
            raise NotFoundError("Session not found")
        return session

    def _load_active(self, session_id: str) -> Optional[Token]:
        current = self._active.get(session_id)
        if current is not None or self._active.is_ended(session_id):
            return current

        session = self._sessions.get_by_id(session_id)
        if session is not None and session.ended_at is not None:
            # Ended elsewhere; retire anything that was left ACTIVE.
            for stale in self._tokens.list_for_session(session_id):
                self._retire(stale)
            self._active.end(session_id)
            return None

        # Process restarted: recover the pointer from the store.
        candidates = [t for t in self._tokens.list_for_session(session_id) if t.status == TokenStatus.ACTIVE]
        if not candidates:
            return None
        current = max(candidates, key=lambda t: t.valid_from)
        self._active.put(session_id, current)
        return current

    def _retire(self, token: Token) -> None:
        if token.status == TokenStatus.ACTIVE:
            self._tokens.update_status(token.token_id, TokenStatus.EXPIRED)

    def _issue_locked(self, session: Session, duration_seconds: int, geofence: Optional[Geofence]) -> Token:
        now = self._clock()
        previous = self._load_active(session.session_id)

        token = Token(
            token_id=uuid.uuid4().hex,
            session_id=session.session_id,
            valid_from=now,
            valid_until=now + timedelta(seconds=duration_seconds),
            geofence=geofence if geofence is not None else session.geofence,
            status=TokenStatus.ACTIVE,
            created_at=now,
        )
        self._tokens.create(token)
        if previous is not None:
            self._retire(previous)
        self._active.put(session.session_id, token)

        logger.info(
            "Issued token %s for session %s (valid until %s)",
            token.token_id,
            session.session_id,
            token.valid_until.isoformat(),
        )
        return token

    def issue_token(
        self,
        session_id: str,
        duration_seconds: Optional[int] = None,
        geofence: Optional[Geofence] = None,
    ) -> Token:
        """Create a token valid from now for `duration_seconds` and make it active."""
        duration = require_positive(
            duration_seconds if duration_seconds is not None else self._default_duration,
            "duration_seconds",
        )
        session = self._require_session(session_id)

        with self._active.lock_for(session_id):
            if self._active.is_ended(session_id) or session.has_ended(self._clock()):
                raise ValidationError("Session has ended")
            return self._issue_locked(session, duration, geofence)

    def rotate(self, session_id: str) -> Optional[Token]:
        """Replace the session's token once it is no longer valid.

        Idempotent: while the current token is valid this returns it unchanged,
        so a second call for the same expiry does nothing. Returns None once the
        session has ended; from then on the session has no active token.
        """
        with self._active.lock_for(session_id):
            if self._active.is_ended(session_id):
                return None

            session = self._require_session(session_id)
            now = self._clock()
            current = self._load_active(session_id)

            if session.has_ended(now):
                self._end_locked(session_id, current)
                return None

            if current is not None and current.is_valid_at(now):
                return current

            if current is None:
                return self._issue_locked(session, self._default_duration, None)
            return self._issue_locked(session, current.duration_seconds, current.geofence)

    def rotate_due(self) -> Sequence[Token]:
        """Rotate every session with a lapsed token; returns the new tokens.

        Sessions are the ones tracked in memory plus any with an ACTIVE token in
        the store, so a restarted worker picks up where the last one stopped.
        """
        issued: list[Token] = []
        tracked = self._active.session_ids()
        stored = [s for s in self._tokens.active_session_ids() if s not in tracked and not self._active.is_ended(s)]
        for session_id in tracked + stored:
            before = self._active.get(session_id)
            try:
                after = self.rotate(session_id)
            except DomainError as e:
                logger.warning("Rotation failed for session %s: %s", session_id, e)
                continue
            if after is not None and (before is None or after.token_id != before.token_id):
                issued.append(after)
        return issued

    def current_token(self, session_id: str) -> Optional[Token]:
        return self._load_active(session_id)

    def revoke(self, token_id: str) -> Token:
        token = self._tokens.get_by_id(token_id)
        if not token:
            raise NotFoundError("Token not found")

        with self._active.lock_for(token.session_id):
            self._tokens.update_status(token_id, TokenStatus.REVOKED)
            revoked = token.with_status(TokenStatus.REVOKED)
            current = self._active.get(token.session_id)
            if current is not None and current.token_id == token_id:
                # Keep the pointer so the next rotate() replaces it.
                self._active.put(token.session_id, revoked)

        logger.info("Revoked token %s for session %s", token_id, token.session_id)
        return revoked

    def end_session(self, session_id: str) -> None:
        with self._active.lock_for(session_id):
            if self._active.is_ended(session_id):
                return
            self._end_locked(session_id, self._load_active(session_id))

    def _end_locked(self, session_id: str, current: Optional[Token]) -> None:
        self._sessions.mark_ended(session_id, self._clock())
        if current is not None:
            self._retire(current)
        self._active.end(session_id)
        logger.info("Session %s ended; no further tokens will be issued", session_id)
