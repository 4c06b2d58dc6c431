from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.datetime_utils import parse_iso_datetime
from ..common.web import current_user_id, error_response, login_required
from ..container import Container
from ..core.exceptions import DomainError, ValidationError
from ..verification.serialization import geofence_from_dict, session_to_dict


def register(app: Flask, container: Container) -> None:
    def _parse_time(data: dict, key: str):
        value = data.get(key)
        if not value:
            raise ValidationError(f"{key} is required")
        try:
            return parse_iso_datetime(str(value))
        except ValueError:
            raise ValidationError(f"{key} must be an ISO-8601 timestamp")

    @app.route("/api/sessions", methods=["POST"], endpoint="api_sessions_create")
    @login_required
    def api_sessions_create():
        data = request.get_json(silent=True) or {}
        try:
            created = container.session_service.create_session(
                title=data.get("title", ""),
                start_time=_parse_time(data, "start_time"),
                end_time=_parse_time(data, "end_time"),
                location_name=data.get("location_name"),
                geofence=geofence_from_dict(data.get("geofence")),
                organizer_id=data.get("organizer_id") or current_user_id(),
                session_id=data.get("session_id"),
            )
        except DomainError as e:
            return error_response(e)
        return jsonify({"success": True, "message": "Session created", "data": session_to_dict(created)}), 201

    @app.route("/api/sessions", methods=["GET"], endpoint="api_sessions_list")
    @login_required
    def api_sessions_list():
        organizer_id = request.args.get("organizer_id") or current_user_id()
        try:
            sessions = container.session_service.list_for_organizer(organizer_id)
        except DomainError as e:
            return error_response(e)
        return jsonify({"success": True, "data": [session_to_dict(s) for s in sessions]})

    @app.route("/api/sessions/<session_id>", methods=["GET"], endpoint="api_sessions_get")
    @login_required
    def api_sessions_get(session_id: str):
        try:
            found = container.session_service.get_session(session_id)
        except DomainError as e:
            return error_response(e)
        return jsonify({"success": True, "data": session_to_dict(found)})
