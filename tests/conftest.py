from datetime import timedelta

import pytest

from src.attendance_sync.attendance_sync.common.datetime_utils import now_utc
from src.attendance_sync.attendance_sync.main import create_app


@pytest.fixture
def app(monkeypatch):
    monkeypatch.setenv("APP_ENV", "testing")
    app = create_app({"STORE_BACKEND": "memory", "TRUST_USER_HEADER": True, "ROTATION_ENABLED": False})
    yield app
    app.extensions["attendance_sync"].verification_service.shutdown()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def live_session(client):
    """A session that started a minute ago, with a 100 m geofence and an active token."""
    start = now_utc() - timedelta(minutes=1)
    resp = client.post(
        "/api/sessions",
        json={
            "title": "Algorithms",
            "start_time": start.isoformat(),
            "end_time": (start + timedelta(hours=1)).isoformat(),
            "location_name": "Hall B",
            "geofence": {"center_lat": 21.1914, "center_lng": 81.3014, "radius_m": 100},
        },
        headers={"X-User-Id": "lecturer-1"},
    )
    assert resp.status_code == 201
    session_id = resp.get_json()["data"]["session_id"]

    resp = client.post(
        f"/api/sessions/{session_id}/tokens",
        json={"duration_seconds": 300},
        headers={"X-User-Id": "lecturer-1"},
    )
    assert resp.status_code == 201
    return {"session_id": session_id, "token_id": resp.get_json()["data"]["token_id"]}
