import threading
from datetime import datetime, timedelta, timezone

import pytest

from src.attendance_sync.attendance_sync.core.enums import TokenStatus
from src.attendance_sync.attendance_sync.core.exceptions import NotFoundError, ValidationError
from src.attendance_sync.attendance_sync.geo.model import Geofence
from src.attendance_sync.attendance_sync.sessions.memory_session_repository import InMemorySessionRepository
from src.attendance_sync.attendance_sync.sessions.model import Session
from src.attendance_sync.attendance_sync.tokens.issuer import TokenIssuer
from src.attendance_sync.attendance_sync.tokens.memory_token_repository import InMemoryTokenRepository

T0 = datetime(2025, 3, 3, 10, 0, tzinfo=timezone.utc)
FENCE = Geofence(center_lat=21.1914, center_lng=81.3014, radius_m=100)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(T0)


@pytest.fixture
def tokens():
    return InMemoryTokenRepository()


@pytest.fixture
def sessions():
    repo = InMemorySessionRepository()
    repo.create(Session(session_id="s-1", title="Lecture", start_time=T0, end_time=T0 + timedelta(hours=1), geofence=FENCE))
    repo.create(Session(session_id="s-2", title="Lab", start_time=T0, end_time=T0 + timedelta(hours=2)))
    return repo


@pytest.fixture
def issuer(tokens, sessions, clock):
    return TokenIssuer(tokens, sessions, default_duration_seconds=300, clock=clock)


def test_issue_token_window_and_inherited_geofence(issuer):
    token = issuer.issue_token("s-1")

    assert token.valid_from == T0
    assert token.valid_until == T0 + timedelta(seconds=300)
    assert token.geofence == FENCE
    assert token.status == TokenStatus.ACTIVE
    assert issuer.current_token("s-1") == token


def test_issue_token_explicit_duration_and_geofence(issuer):
    fence = Geofence(center_lat=1.0, center_lng=2.0, radius_m=50)
    token = issuer.issue_token("s-2", duration_seconds=60, geofence=fence)
    assert token.duration_seconds == 60
    assert token.geofence == fence


def test_issue_token_unknown_session(issuer):
    with pytest.raises(NotFoundError):
        issuer.issue_token("missing")


def test_issue_token_rejects_non_positive_duration(issuer):
    with pytest.raises(ValidationError):
        issuer.issue_token("s-1", duration_seconds=0)


def test_reissue_expires_previous_token(issuer, tokens):
    first = issuer.issue_token("s-1")
    second = issuer.issue_token("s-1")

    assert tokens.get_by_id(first.token_id).status == TokenStatus.EXPIRED
    assert issuer.current_token("s-1") == second


def test_rotate_is_noop_while_token_valid(issuer, clock):
    token = issuer.issue_token("s-1")
    clock.advance(seconds=300)
    assert issuer.rotate("s-1") == token


def test_rotate_after_expiry_is_idempotent(issuer, tokens, clock):
    first = issuer.issue_token("s-1", duration_seconds=120)
    clock.advance(seconds=121)

    second = issuer.rotate("s-1")
    again = issuer.rotate("s-1")

    assert second.token_id != first.token_id
    assert again == second
    assert second.duration_seconds == 120
    assert second.geofence == first.geofence
    assert tokens.get_by_id(first.token_id).status == TokenStatus.EXPIRED
    assert len(tokens.list_for_session("s-1")) == 2


def test_concurrent_rotation_issues_one_replacement(issuer, tokens, clock):
    issuer.issue_token("s-1")
    clock.advance(minutes=6)

    results = []
    barrier = threading.Barrier(8)

    def worker():
        barrier.wait()
        results.append(issuer.rotate("s-1"))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len({t.token_id for t in results}) == 1
    assert len(tokens.list_for_session("s-1")) == 2


def test_rotate_after_session_end_stops_for_good(issuer, tokens, clock):
    token = issuer.issue_token("s-1")
    clock.advance(hours=1, seconds=1)

    assert issuer.rotate("s-1") is None
    assert issuer.rotate("s-1") is None
    assert issuer.current_token("s-1") is None
    assert tokens.get_by_id(token.token_id).status == TokenStatus.EXPIRED
    with pytest.raises(ValidationError):
        issuer.issue_token("s-1")


def test_end_session(issuer, tokens):
    token = issuer.issue_token("s-1")
    issuer.end_session("s-1")

    assert issuer.current_token("s-1") is None
    assert issuer.rotate("s-1") is None
    assert tokens.get_by_id(token.token_id).status == TokenStatus.EXPIRED


def test_revoke_then_rotate_replaces_immediately(issuer, tokens):
    token = issuer.issue_token("s-1")
    revoked = issuer.revoke(token.token_id)

    assert revoked.status == TokenStatus.REVOKED
    assert tokens.get_by_id(token.token_id).status == TokenStatus.REVOKED

    replacement = issuer.rotate("s-1")
    assert replacement.token_id != token.token_id
    # Revocation is kept; only ACTIVE tokens get marked EXPIRED.
    assert tokens.get_by_id(token.token_id).status == TokenStatus.REVOKED


def test_revoke_unknown_token(issuer):
    with pytest.raises(NotFoundError):
        issuer.revoke("nope")


def test_rotate_due_only_touches_lapsed_sessions(issuer, clock):
    a = issuer.issue_token("s-1", duration_seconds=60)
    b = issuer.issue_token("s-2", duration_seconds=600)
    clock.advance(seconds=61)

    issued = issuer.rotate_due()

    assert [t.session_id for t in issued] == ["s-1"]
    assert issuer.current_token("s-1").token_id != a.token_id
    assert issuer.current_token("s-2") == b


def test_current_token_recovered_after_restart(issuer, tokens, sessions, clock):
    token = issuer.issue_token("s-1")
    restarted = TokenIssuer(tokens, sessions, clock=clock)
    assert restarted.current_token("s-1") == token


def test_end_session_survives_restart(issuer, tokens, sessions, clock):
    issuer.issue_token("s-1")
    issuer.end_session("s-1")
    assert sessions.get_by_id("s-1").ended_at == T0

    restarted = TokenIssuer(tokens, sessions, clock=clock)
    clock.advance(minutes=10)

    assert restarted.rotate("s-1") is None
    assert restarted.current_token("s-1") is None
    assert restarted.rotate_due() == []
    with pytest.raises(ValidationError):
        restarted.issue_token("s-1")
    assert all(t.status == TokenStatus.EXPIRED for t in tokens.list_for_session("s-1"))


def test_session_ended_by_another_process_retires_leftover_token(issuer, tokens, sessions, clock):
    token = issuer.issue_token("s-1")
    sessions.mark_ended("s-1", clock())

    assert issuer.current_token("s-1") is None
    assert tokens.get_by_id(token.token_id).status == TokenStatus.EXPIRED


def test_rotate_due_after_restart_picks_up_stored_sessions(issuer, tokens, sessions, clock):
    first = issuer.issue_token("s-1", duration_seconds=60)
    clock.advance(seconds=61)

    restarted = TokenIssuer(tokens, sessions, clock=clock)
    issued = restarted.rotate_due()

    assert [t.session_id for t in issued] == ["s-1"]
    assert issued[0].token_id != first.token_id
    assert tokens.get_by_id(first.token_id).status == TokenStatus.EXPIRED
