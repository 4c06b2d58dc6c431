from datetime import datetime, timedelta, timezone

import pytest

from src.attendance_sync.attendance_sync.attendance.ledger import AttendanceLedger
from src.attendance_sync.attendance_sync.attendance.memory_attendance_repository import InMemoryAttendanceRepository
from src.attendance_sync.attendance_sync.core.enums import ErrorKind, SyncState
from src.attendance_sync.attendance_sync.core.exceptions import StoreUnreachableError
from src.attendance_sync.attendance_sync.geo.model import GeoPoint
from src.attendance_sync.attendance_sync.offline.client import PROVISIONAL_MESSAGE, ScanClient
from src.attendance_sync.attendance_sync.offline.gateway import LocalVerificationGateway
from src.attendance_sync.attendance_sync.offline.sqlite_intent_store import SQLiteIntentStore
from src.attendance_sync.attendance_sync.sessions.memory_session_repository import InMemorySessionRepository
from src.attendance_sync.attendance_sync.sessions.model import Session
from src.attendance_sync.attendance_sync.tokens.issuer import TokenIssuer
from src.attendance_sync.attendance_sync.tokens.memory_token_repository import InMemoryTokenRepository
from src.attendance_sync.attendance_sync.verification.result import VerificationResult
from src.attendance_sync.attendance_sync.verification.service import VerificationService

T10 = datetime(2025, 3, 3, 10, 0, tzinfo=timezone.utc)
HERE = GeoPoint(lat=21.1914, lng=81.3014)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class SwitchableGateway:
    """Real in-process gateway behind an on/off switch."""

    def __init__(self, inner):
        self.inner = inner
        self.up = True
        self.verify_calls = 0

    def verify(self, token_id, user_id, location, *, timeout=None):
        self.verify_calls += 1
        if not self.up:
            return VerificationResult.failure(ErrorKind.UNREACHABLE)
        return self.inner.verify(token_id, user_id, location, timeout=timeout)

    def history(self, user_id, limit, *, timeout=None):
        if not self.up:
            raise StoreUnreachableError("offline")
        return self.inner.history(user_id, limit, timeout=timeout)


class Network:
    def __init__(self):
        self.online = True

    def __call__(self) -> bool:
        return self.online


@pytest.fixture
def env(tmp_path):
    clock = FakeClock(T10)
    sessions = InMemorySessionRepository()
    sessions.create(Session(session_id="s-1", title="Lecture", start_time=T10, end_time=T10 + timedelta(hours=1)))
    tokens = InMemoryTokenRepository()
    ledger = AttendanceLedger(InMemoryAttendanceRepository(), clock=clock)
    issuer = TokenIssuer(tokens, sessions, clock=clock)
    service = VerificationService(tokens, sessions, ledger, clock=clock)
    gateway = SwitchableGateway(LocalVerificationGateway(service))
    network = Network()
    store = SQLiteIntentStore(tmp_path / "intents.db")
    client = ScanClient(gateway, store, is_reachable=network, clock=clock)
    yield {
        "clock": clock,
        "token": issuer.issue_token("s-1", duration_seconds=600),
        "issuer": issuer,
        "ledger": ledger,
        "gateway": gateway,
        "network": network,
        "store": store,
        "client": client,
    }
    store.close()
    service.shutdown()


def test_online_submit_returns_server_result(env):
    outcome = env["client"].submit(env["token"].token_id, "u-1", HERE)

    assert not outcome.provisional
    assert outcome.result.accepted
    assert env["store"].list_pending() == []


def test_online_rejection_is_not_queued(env):
    outcome = env["client"].submit("unknown-token", "u-1", HERE)

    assert outcome.result.error == ErrorKind.INVALID_TOKEN
    assert env["store"].list_pending() == []


def test_offline_submit_is_provisional(env):
    env["network"].online = False

    outcome = env["client"].submit(env["token"].token_id, "u-1", HERE)

    assert outcome.provisional
    assert outcome.message == PROVISIONAL_MESSAGE
    assert env["gateway"].verify_calls == 0
    pending = env["store"].list_pending()
    assert [i.local_id for i in pending] == [outcome.intent.local_id]
    assert pending[0].captured_at == T10
    assert pending[0].location == HERE
    assert env["ledger"].query_by_user("u-1") == []


def test_unreachable_answer_is_queued(env):
    env["gateway"].up = False

    outcome = env["client"].submit('{"tokenId": "%s"}' % env["token"].token_id, "u-1", HERE)

    assert outcome.provisional
    assert env["store"].list_pending()[0].token_id == env["token"].token_id


def test_unauthenticated_and_garbage_are_not_queued(env):
    env["network"].online = False

    assert env["client"].submit(env["token"].token_id, None, HERE).result.error == ErrorKind.UNAUTHENTICATED
    assert env["client"].submit("", "u-1", HERE).result.error == ErrorKind.INVALID_TOKEN
    assert env["store"].list_pending() == []


def test_sync_after_reconnect(env):
    env["network"].online = False
    env["client"].submit(env["token"].token_id, "u-1", HERE)
    env["client"].submit(env["token"].token_id, "u-2", HERE)

    env["network"].online = True
    report = env["client"].sync(sleep=lambda _: None)

    assert report.completed
    assert len(report.synced) == 2
    assert [r.user_id for r in env["ledger"].query_by_session("s-1")] == ["u-1", "u-2"]
    assert env["client"].pending_intents() == []


def test_sync_backs_off_while_service_down(env):
    env["network"].online = False
    env["client"].submit(env["token"].token_id, "u-1", HERE)
    env["network"].online = True
    env["gateway"].up = False

    delays = []

    def sleep(seconds):
        delays.append(seconds)
        if len(delays) == 2:
            env["gateway"].up = True

    report = env["client"].sync(max_attempts=5, base_delay=0.5, sleep=sleep)

    assert report.completed
    assert delays == [0.5, 1.0]
    assert len(report.synced) == 1


def test_sync_gives_up_after_max_attempts(env):
    env["network"].online = False
    env["client"].submit(env["token"].token_id, "u-1", HERE)

    delays = []
    report = env["client"].sync(max_attempts=3, base_delay=1, sleep=delays.append)

    assert delays == [1, 2]
    assert not report.completed
    assert report.halted_by == ErrorKind.UNREACHABLE
    assert report.remaining == 1
    assert len(env["client"].pending_intents()) == 1


def test_expired_offline_scan_surfaces_as_rejected(env):
    env["network"].online = False
    env["client"].submit(env["token"].token_id, "u-1", HERE)

    env["clock"].now = T10 + timedelta(minutes=20)
    env["network"].online = True
    env["client"].sync(sleep=lambda _: None)

    rejected = env["client"].rejected_intents()
    assert len(rejected) == 1
    assert rejected[0].sync_state == SyncState.REJECTED
    assert rejected[0].detail


def test_history_served_from_cache_when_offline(env):
    env["client"].submit(env["token"].token_id, "u-1", HERE)

    online = env["client"].history("u-1")
    assert not online.from_cache
    assert [r.session_id for r in online.records] == ["s-1"]

    env["gateway"].up = False
    cached = env["client"].history("u-1")
    assert cached.from_cache
    assert cached.records == online.records

    env["network"].online = False
    assert env["client"].history("u-1").records == online.records
    assert env["client"].history("someone-else").records == []


def test_sync_with_empty_queue_is_complete(env):
    env["network"].online = False
    delays = []

    report = env["client"].sync(max_attempts=3, sleep=delays.append)

    assert report.completed
    assert delays == []


def test_invalid_location_is_refused_before_queueing(env):
    env["network"].online = False
    outcome = env["client"].submit(env["token"].token_id, "u-1", GeoPoint(lat=95.0, lng=0.0))

    assert not outcome.provisional
    assert outcome.result.error == ErrorKind.OUT_OF_RANGE
    assert env["store"].list_pending() == []
