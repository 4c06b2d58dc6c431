from src.attendance_sync.attendance_sync import main as main_module
from src.attendance_sync.attendance_sync.main import create_app

HOST = {"X-User-Id": "lecturer-1"}
HERE = {"lat": 21.1914, "lng": 81.3014, "accuracy": 9}
FAR = {"lat": 21.1914 + 0.004497, "lng": 81.3014}


def _verify(client, token, user="student-1", location=HERE):
    headers = {"X-User-Id": user} if user else {}
    return client.post("/api/attendance/verify", json={"token": token, "location": location}, headers=headers)


def test_verify_accepts_then_reports_duplicate(client, live_session):
    first = _verify(client, live_session["token_id"])
    assert first.status_code == 201
    body = first.get_json()
    assert body["success"] is True
    assert body["kind"] == "ACCEPTED"
    assert body["record"]["status"] == "PRESENT"

    again = _verify(client, live_session["token_id"])
    assert again.status_code == 409
    body = again.get_json()
    assert body["kind"] == "ALREADY_RECORDED"
    assert body["existing_timestamp"] == first.get_json()["record"]["timestamp"]


def test_verify_failure_codes(client, live_session):
    assert _verify(client, live_session["token_id"], user=None).status_code == 401
    assert _verify(client, "no-such-token").status_code == 404

    far = _verify(client, live_session["token_id"], location=FAR)
    assert far.status_code == 403
    assert far.get_json()["kind"] == "OUT_OF_RANGE"
    assert round(far.get_json()["distance_m"]) == 500

    missing = _verify(client, live_session["token_id"], location=None)
    assert missing.status_code == 403
    assert missing.get_json()["distance_m"] is None


def test_verify_rejects_malformed_location(client, live_session):
    resp = _verify(client, live_session["token_id"], location={"lat": 200, "lng": 0})
    assert resp.status_code == 400
    body = resp.get_json()
    assert body["success"] is False
    assert body["kind"] == "OUT_OF_RANGE"
    assert body["message"].startswith("Invalid location")


def test_verify_accepts_json_payload(client, live_session):
    resp = _verify(client, '{"tokenId": "%s"}' % live_session["token_id"])
    assert resp.status_code == 201


def test_revoked_token_is_gone(client, live_session):
    resp = client.post(f"/api/tokens/{live_session['token_id']}/revoke", headers=HOST)
    assert resp.status_code == 200
    assert resp.get_json()["data"]["status"] == "REVOKED"

    verify = _verify(client, live_session["token_id"])
    assert verify.status_code == 410
    assert verify.get_json()["kind"] == "TOKEN_EXPIRED_OR_NOT_YET_VALID"

    rotated = client.post(f"/api/sessions/{live_session['session_id']}/rotate", headers=HOST).get_json()
    assert rotated["data"]["token_id"] != live_session["token_id"]
    assert _verify(client, rotated["data"]["token_id"]).status_code == 201


def test_history_and_roster(client, live_session):
    _verify(client, live_session["token_id"], user="student-1")
    _verify(client, live_session["token_id"], user="student-2")

    mine = client.get("/api/attendance/me?limit=10", headers={"X-User-Id": "student-1"})
    assert mine.status_code == 200
    assert [r["session_id"] for r in mine.get_json()["data"]] == [live_session["session_id"]]

    roster = client.get(f"/api/sessions/{live_session['session_id']}/attendance", headers=HOST)
    assert [r["user_id"] for r in roster.get_json()["data"]] == ["student-1", "student-2"]

    detail = client.get(f"/api/sessions/{live_session['session_id']}", headers=HOST).get_json()
    assert detail["data"]["attendee_count"] == 2


def test_history_requires_identity_and_integer_limit(client):
    assert client.get("/api/attendance/me").status_code == 401
    assert client.get("/api/attendance/me?limit=x", headers={"X-User-Id": "u"}).status_code == 400


def test_sessions_listing_and_lookup(client, live_session):
    listed = client.get("/api/sessions", headers=HOST).get_json()["data"]
    assert [s["session_id"] for s in listed] == [live_session["session_id"]]
    assert listed[0]["organizer_id"] == "lecturer-1"

    assert client.get("/api/sessions/missing", headers=HOST).status_code == 404


def test_create_session_validation(client):
    resp = client.post("/api/sessions", json={"title": "x", "start_time": "nonsense"}, headers=HOST)
    assert resp.status_code == 400
    assert resp.get_json()["success"] is False


def test_current_token_json_and_qr(client, live_session):
    sid = live_session["session_id"]
    current = client.get(f"/api/sessions/{sid}/token", headers=HOST).get_json()["data"]
    assert current["token_id"] == live_session["token_id"]
    assert current["payload"] == live_session["token_id"]
    assert current["status"] == "ACTIVE"

    png = client.get(f"/api/sessions/{sid}/token.png", headers=HOST)
    assert png.status_code == 200
    assert png.mimetype == "image/png"
    assert png.data.startswith(b"\x89PNG")


def test_end_session_stops_tokens(client, live_session):
    sid = live_session["session_id"]
    assert client.post(f"/api/sessions/{sid}/end", headers=HOST).status_code == 200

    assert client.get(f"/api/sessions/{sid}/token", headers=HOST).status_code == 404
    assert client.post(f"/api/sessions/{sid}/rotate", headers=HOST).get_json()["data"] is None
    assert client.post(f"/api/sessions/{sid}/tokens", json={}, headers=HOST).status_code == 400


def test_identity_from_flask_session_when_header_not_trusted(monkeypatch):
    monkeypatch.setenv("APP_ENV", "testing")
    app = create_app({"STORE_BACKEND": "memory", "TRUST_USER_HEADER": False})
    client = app.test_client()

    assert client.get("/api/attendance/me", headers={"X-User-Id": "student-1"}).status_code == 401

    with client.session_transaction() as s:
        s["user_id"] = "student-1"
    assert client.get("/api/attendance/me").status_code == 200
    app.extensions["attendance_sync"].verification_service.shutdown()


def test_pool_shutdown_hook_only_registered_with_timeout(monkeypatch):
    monkeypatch.setenv("APP_ENV", "testing")
    registered = []
    monkeypatch.setattr(main_module.atexit, "register", lambda fn, *args: registered.append(fn))

    create_app({"STORE_BACKEND": "memory", "ROTATION_ENABLED": False, "VERIFY_TIMEOUT_SECONDS": None})
    assert registered == []

    timed = create_app({"STORE_BACKEND": "memory", "ROTATION_ENABLED": False, "VERIFY_TIMEOUT_SECONDS": 2.0})
    service = timed.extensions["attendance_sync"].verification_service
    assert registered == [service.shutdown]
    service.shutdown()
