"""JSON shapes shared by the Flask controllers and the HTTP gateway."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from ..attendance.model import AttendanceRecord
from ..common.datetime_utils import parse_iso_datetime
from ..core.enums import AttendanceStatus, ErrorKind
from ..geo.model import Geofence, GeoPoint
from ..sessions.model import Session
from ..tokens.model import Token
from ..tokens.payload import encode_token_payload
from .result import VerificationResult


def location_to_dict(location: Optional[GeoPoint]) -> Optional[dict]:
    if location is None:
        return None
    return {"lat": location.lat, "lng": location.lng, "accuracy": location.accuracy}


def location_from_dict(data: Optional[dict]) -> Optional[GeoPoint]:
    if not data or data.get("lat") is None or data.get("lng") is None:
        return None
    return GeoPoint.create(data["lat"], data["lng"], data.get("accuracy"))


def geofence_to_dict(geofence: Optional[Geofence]) -> Optional[dict]:
    if geofence is None:
        return None
    return {"center_lat": geofence.center_lat, "center_lng": geofence.center_lng, "radius_m": geofence.radius_m}


def geofence_from_dict(data: Optional[dict]) -> Optional[Geofence]:
    if not data:
        return None
    return Geofence.create(data.get("center_lat"), data.get("center_lng"), data.get("radius_m"))


def record_to_dict(record: AttendanceRecord) -> dict:
    return {
        "record_id": record.record_id,
        "user_id": record.user_id,
        "session_id": record.session_id,
        "token_id": record.token_id,
        "timestamp": record.timestamp.isoformat(),
        "status": record.status.value,
        "location": location_to_dict(record.location),
    }


def record_from_dict(data: dict) -> AttendanceRecord:
    loc = data.get("location")
    return AttendanceRecord(
        record_id=str(data["record_id"]),
        user_id=str(data["user_id"]),
        session_id=str(data["session_id"]),
        token_id=str(data["token_id"]),
        timestamp=parse_iso_datetime(data["timestamp"]),
        status=AttendanceStatus(data["status"]),
        location=GeoPoint(lat=loc["lat"], lng=loc["lng"], accuracy=loc.get("accuracy")) if loc else None,
    )


def result_to_dict(result: VerificationResult) -> dict[str, Any]:
    return {
        "success": result.accepted,
        "kind": "ACCEPTED" if result.accepted else result.error.value,
        "message": result.message,
        "record": record_to_dict(result.record) if result.record else None,
        "existing_timestamp": result.existing_timestamp.isoformat() if result.existing_timestamp else None,
        "distance_m": result.distance_m,
    }


def result_from_dict(data: dict) -> VerificationResult:
    kind = data.get("kind")
    if kind == "ACCEPTED" and data.get("record"):
        return VerificationResult(record=record_from_dict(data["record"]), message=data.get("message") or "")

    error = ErrorKind(kind)
    existing = data.get("existing_timestamp")
    return VerificationResult(
        error=error,
        existing_timestamp=parse_iso_datetime(existing) if existing else None,
        distance_m=data.get("distance_m"),
        message=data.get("message") or "",
    )


def token_to_dict(token: Token, *, now: Optional[datetime] = None) -> dict:
    return {
        "token_id": token.token_id,
        "session_id": token.session_id,
        "valid_from": token.valid_from.isoformat(),
        "valid_until": token.valid_until.isoformat(),
        "status": (token.status_at(now) if now else token.status).value,
        "geofence": geofence_to_dict(token.geofence),
        "payload": encode_token_payload(token.token_id),
    }


def session_to_dict(session: Session) -> dict:
    return {
        "session_id": session.session_id,
        "title": session.title,
        "start_time": session.start_time.isoformat(),
        "end_time": session.end_time.isoformat(),
        "location_name": session.location_name,
        "geofence": geofence_to_dict(session.geofence),
        "organizer_id": session.organizer_id,
        "attendee_count": session.attendee_count,
        "ended_at": session.ended_at.isoformat() if session.ended_at else None,
    }
