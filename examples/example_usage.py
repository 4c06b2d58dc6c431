"""Walk through a session without Flask: issue a token, scan online, scan offline, sync.

Runs against the in-memory backend, so no database is needed.
"""

from datetime import timedelta

from src.attendance_sync.attendance_sync.common.datetime_utils import now_utc
from src.attendance_sync.attendance_sync.common.logging_utils import configure_logging
from src.attendance_sync.attendance_sync.container import build_container
from src.attendance_sync.attendance_sync.geo.model import Geofence, GeoPoint
from src.attendance_sync.attendance_sync.offline.client import ScanClient
from src.attendance_sync.attendance_sync.offline.gateway import LocalVerificationGateway
from src.attendance_sync.attendance_sync.offline.sqlite_intent_store import SQLiteIntentStore


def main():
    configure_logging("INFO")
    container = build_container(backend="memory")

    start = now_utc() - timedelta(minutes=1)
    session = container.session_service.create_session(
        title="Data Structures, lecture 4",
        start_time=start,
        end_time=start + timedelta(hours=1),
        location_name="Hall B",
        geofence=Geofence.create(21.1914, 81.3014, 100),
        organizer_id="lecturer-1",
    )
    token = container.token_issuer.issue_token(session.session_id, duration_seconds=300)
    here = GeoPoint.create(21.1915, 81.3015, 12)

    online = {"up": True}
    client = ScanClient(
        LocalVerificationGateway(container.verification_service),
        SQLiteIntentStore(),
        is_reachable=lambda: online["up"],
    )

    print(client.submit(token.token_id, "student-1", here).message)

    online["up"] = False
    outcome = client.submit(token.token_id, "student-2", here)
    print(outcome.message, "(provisional)" if outcome.provisional else "")

    online["up"] = True
    report = client.sync()
    print(f"synced={len(report.synced)} rejected={len(report.rejected)}")

    for record in container.ledger.query_by_session(session.session_id):
        print(record.user_id, record.status.value, record.timestamp.isoformat())


if __name__ == "__main__":
    main()
