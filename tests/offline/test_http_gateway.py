from datetime import datetime, timedelta, timezone
from urllib.parse import urlencode

import pytest
import requests

from src.attendance_sync.attendance_sync.core.enums import ErrorKind, SyncState
from src.attendance_sync.attendance_sync.core.exceptions import PersistenceError, StoreUnreachableError
from src.attendance_sync.attendance_sync.geo.model import GeoPoint
from src.attendance_sync.attendance_sync.offline.gateway import HttpVerificationGateway
from src.attendance_sync.attendance_sync.offline.model import PendingIntent
from src.attendance_sync.attendance_sync.offline.reconciler import Reconciler
from src.attendance_sync.attendance_sync.offline.sqlite_intent_store import SQLiteIntentStore

HERE = GeoPoint(lat=21.1914, lng=81.3014, accuracy=9)


class FlaskBackedSession:
    """Duck-typed requests.Session that routes calls into a Flask test client."""

    def __init__(self, client):
        self.client = client
        self.timeouts = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.timeouts.append(timeout)
        return _Response(self.client.post(url.replace("http://api", ""), json=json, headers=headers))

    def get(self, url, params=None, headers=None, timeout=None):
        self.timeouts.append(timeout)
        path = url.replace("http://api", "")
        if params:
            path = f"{path}?{urlencode(params)}"
        return _Response(self.client.get(path, headers=headers))


class _Response:
    def __init__(self, flask_response):
        self.status_code = flask_response.status_code
        self._body = flask_response.get_json()

    def json(self):
        if self._body is None:
            raise ValueError("no JSON body")
        return self._body

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")


class DeadSession:
    def __init__(self, exc):
        self.exc = exc

    def post(self, *args, **kwargs):
        raise self.exc

    def get(self, *args, **kwargs):
        raise self.exc


class StatusSession:
    def __init__(self, status, body=None):
        self.status = status
        self.body = body

    def post(self, *args, **kwargs):
        response = requests.Response()
        response.status_code = self.status
        response._content = (self.body or "").encode()
        return response

    get = post


def test_round_trip_through_flask(client, live_session):
    session = FlaskBackedSession(client)
    gateway = HttpVerificationGateway("http://api/", session=session)

    accepted = gateway.verify(live_session["token_id"], "student-1", HERE, timeout=3)
    assert accepted.accepted
    assert accepted.record.user_id == "student-1"
    assert accepted.record.location == HERE

    duplicate = gateway.verify(live_session["token_id"], "student-1", HERE, timeout=3)
    assert duplicate.error == ErrorKind.ALREADY_RECORDED
    assert duplicate.existing_timestamp == accepted.record.timestamp

    history = gateway.history("student-1", 5, timeout=3)
    assert [r.record_id for r in history] == [accepted.record.record_id]
    assert session.timeouts == [3, 3, 3]


def test_rejections_come_back_typed(client, live_session):
    gateway = HttpVerificationGateway("http://api", session=FlaskBackedSession(client))
    assert gateway.verify("bogus", "student-1", HERE).error == ErrorKind.INVALID_TOKEN
    assert gateway.verify(live_session["token_id"], "", HERE).error == ErrorKind.UNAUTHENTICATED


@pytest.mark.parametrize("exc", [requests.ConnectionError("refused"), requests.Timeout("slow")])
def test_network_errors_mean_unreachable(exc):
    gateway = HttpVerificationGateway("http://api", session=DeadSession(exc))
    assert gateway.verify("tok", "u-1", HERE, timeout=1).error == ErrorKind.UNREACHABLE
    with pytest.raises(StoreUnreachableError):
        gateway.history("u-1", 5, timeout=1)


@pytest.mark.parametrize("status", [502, 503, 504])
def test_gateway_errors_mean_unreachable(status):
    gateway = HttpVerificationGateway("http://api", session=StatusSession(status))
    assert gateway.verify("tok", "u-1", HERE).error == ErrorKind.UNREACHABLE


def test_unparseable_body_is_persistence_failure():
    gateway = HttpVerificationGateway("http://api", session=StatusSession(200, "<html>oops</html>"))
    assert gateway.verify("tok", "u-1", HERE).error == ErrorKind.PERSISTENCE_FAILURE


def test_unparseable_client_error_is_terminal():
    gateway = HttpVerificationGateway("http://api", session=StatusSession(400, "bad request"))
    result = gateway.verify("tok", "u-1", HERE)

    assert result.error == ErrorKind.INVALID_TOKEN
    assert not result.recoverable


def test_bad_location_rejected_by_server_does_not_block_queue(client, live_session, tmp_path):
    gateway = HttpVerificationGateway("http://api", session=FlaskBackedSession(client))
    store = SQLiteIntentStore(tmp_path / "intents.db")
    t0 = datetime(2025, 3, 3, 10, 0, tzinfo=timezone.utc)
    # Written straight to the store, as an older client build would have queued it.
    store.add(PendingIntent("a", live_session["token_id"], "student-1", t0, location=GeoPoint(lat=95.0, lng=0.0)))
    store.add(PendingIntent("b", live_session["token_id"], "student-2", t0 + timedelta(seconds=1), location=HERE))

    report = Reconciler(store, gateway).drain()

    assert report.completed
    assert [i.local_id for i in report.rejected] == ["a"]
    assert [i.local_id for i in report.synced] == ["b"]
    assert store.list_pending() == []
    assert store.list_by_state(SyncState.REJECTED)[0].detail.startswith("Invalid location")
    store.close()


def test_history_with_unreadable_body_raises_persistence_error():
    gateway = HttpVerificationGateway("http://api", session=StatusSession(200, body=None))
    with pytest.raises(PersistenceError):
        gateway.history("u-1", 5)


def test_history_with_malformed_record_raises_persistence_error():
    gateway = HttpVerificationGateway("http://api", session=StatusSession(200, '{"data": [{"record_id": "r-1"}]}'))
    with pytest.raises(PersistenceError):
        gateway.history("u-1", 5)
