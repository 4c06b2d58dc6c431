from __future__ import annotations

from flask import Flask, current_app, jsonify, request

from ..common.web import current_user_id, error_response, int_arg, login_required
from ..container import Container
from ..core.enums import ErrorKind
from ..core.exceptions import DomainError, ValidationError
from ..verification.result import VerificationResult
from ..verification.serialization import location_from_dict, record_to_dict, result_to_dict

_HTTP_STATUS = {
    ErrorKind.INVALID_TOKEN: 404,
    ErrorKind.TOKEN_EXPIRED_OR_NOT_YET_VALID: 410,
    ErrorKind.OUT_OF_RANGE: 403,
    ErrorKind.ALREADY_RECORDED: 409,
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.PERSISTENCE_FAILURE: 500,
    ErrorKind.UNREACHABLE: 503,
}


def http_status_for(result: VerificationResult) -> int:
    return 201 if result.accepted else _HTTP_STATUS[result.error]


def register(app: Flask, container: Container) -> None:
    @app.route("/api/attendance/verify", methods=["POST"], endpoint="api_attendance_verify")
    def api_attendance_verify():
        """Verify a scanned QR payload for the signed-in user.

        Body: {"token": "<decoded QR payload>", "location": {"lat", "lng", "accuracy"}}.
        The response always carries the verification outcome, failures included,
        so scanning clients can tell a rejection from an outage.
        """
        data = request.get_json(silent=True) or {}
        raw = data.get("token") or data.get("qr_code") or ""
        try:
            location = location_from_dict(data.get("location"))
        except ValidationError as e:
            # Malformed input is terminal; replaying clients must not retry it.
            rejected = VerificationResult.failure(ErrorKind.OUT_OF_RANGE, message=f"Invalid location: {e}")
            return jsonify(result_to_dict(rejected)), 400

        result = container.verification_service.verify_scan(
            str(raw),
            current_user_id(),
            location,
            timeout=current_app.config.get("VERIFY_TIMEOUT_SECONDS"),
        )
        return jsonify(result_to_dict(result)), http_status_for(result)

    @app.route("/api/attendance/me", methods=["GET"], endpoint="api_attendance_me")
    @login_required
    def api_attendance_me():
        try:
            limit = int_arg("limit", current_app.config.get("HISTORY_LIMIT", 30))
            records = container.verification_service.history(current_user_id(), limit)
        except DomainError as e:
            return error_response(e)
        return jsonify({"success": True, "data": [record_to_dict(r) for r in records]})

    @app.route("/api/sessions/<session_id>/attendance", methods=["GET"], endpoint="api_session_attendance")
    @login_required
    def api_session_attendance(session_id: str):
        try:
            container.session_service.get_session(session_id)
            records = container.ledger.query_by_session(session_id)
        except DomainError as e:
            return error_response(e)
        return jsonify({"success": True, "data": [record_to_dict(r) for r in records]})
