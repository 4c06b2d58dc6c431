from __future__ import annotations

import io

import qrcode
from flask import Flask, jsonify, request, send_file

from ..common.datetime_utils import now_utc
from ..common.web import error_response, login_required
from ..container import Container
from ..core.exceptions import DomainError
from .payload import encode_token_payload
from ..verification.serialization import geofence_from_dict, token_to_dict


def register(app: Flask, container: Container) -> None:
    @app.route("/api/sessions/<session_id>/tokens", methods=["POST"], endpoint="api_tokens_issue")
    @login_required
    def api_tokens_issue(session_id: str):
        data = request.get_json(silent=True) or {}
        try:
            token = container.token_issuer.issue_token(
                session_id,
                duration_seconds=data.get("duration_seconds"),
                geofence=geofence_from_dict(data.get("geofence")),
            )
        except DomainError as e:
            return error_response(e)
        return jsonify({"success": True, "message": "Token issued", "data": token_to_dict(token)}), 201

    @app.route("/api/sessions/<session_id>/rotate", methods=["POST"], endpoint="api_tokens_rotate")
    @login_required
    def api_tokens_rotate(session_id: str):
        try:
            token = container.token_issuer.rotate(session_id)
        except DomainError as e:
            return error_response(e)
        if token is None:
            return jsonify({"success": True, "message": "Session has ended", "data": None})
        return jsonify({"success": True, "data": token_to_dict(token)})

    @app.route("/api/sessions/<session_id>/end", methods=["POST"], endpoint="api_sessions_end")
    @login_required
    def api_sessions_end(session_id: str):
        try:
            container.session_service.get_session(session_id)
            container.token_issuer.end_session(session_id)
        except DomainError as e:
            return error_response(e)
        return jsonify({"success": True, "message": "Session ended"})

    @app.route("/api/sessions/<session_id>/token", methods=["GET"], endpoint="api_tokens_current")
    @login_required
    def api_tokens_current(session_id: str):
        try:
            token = container.token_issuer.current_token(session_id)
        except DomainError as e:
            return error_response(e)
        if token is None:
            return jsonify({"success": False, "message": "No active token for this session"}), 404
        return jsonify({"success": True, "data": token_to_dict(token, now=now_utc())})

    @app.route("/api/sessions/<session_id>/token.png", methods=["GET"], endpoint="api_tokens_qr")
    @login_required
    def api_tokens_qr(session_id: str):
        """QR image of the session's active token, for the host display."""
        try:
            token = container.token_issuer.current_token(session_id)
        except DomainError as e:
            return error_response(e)
        if token is None:
            return jsonify({"success": False, "message": "No active token for this session"}), 404

        qr = qrcode.QRCode(
            version=1,
            error_correction=qrcode.constants.ERROR_CORRECT_L,
            box_size=10,
            border=2,
        )
        qr.add_data(encode_token_payload(token.token_id))
        qr.make(fit=True)
        img = qr.make_image(fill_color="black", back_color="white")

        buf = io.BytesIO()
        img.save(buf, format="PNG")
        buf.seek(0)

        response = send_file(buf, mimetype="image/png")
        response.headers["Cache-Control"] = "no-store"
        return response

    @app.route("/api/tokens/<token_id>/revoke", methods=["POST"], endpoint="api_tokens_revoke")
    @login_required
    def api_tokens_revoke(token_id: str):
        try:
            revoked = container.token_issuer.revoke(token_id)
        except DomainError as e:
            return error_response(e)
        return jsonify({"success": True, "message": "Token revoked", "data": token_to_dict(revoked)})
