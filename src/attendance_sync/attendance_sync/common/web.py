from __future__ import annotations

import logging
from functools import wraps
from typing import Optional

from flask import current_app, jsonify, request, session

from ..core.exceptions import DomainError, NotFoundError, StoreUnreachableError, ValidationError

logger = logging.getLogger(__name__)

USER_HEADER = "X-User-Id"


def current_user_id() -> Optional[str]:
    """Signed-in user from the Flask session, or the proxy header when trusted."""
    user_id = session.get("user_id")
    if user_id is None and current_app.config.get("TRUST_USER_HEADER"):
        user_id = request.headers.get(USER_HEADER)
    user_id = str(user_id).strip() if user_id is not None else ""
    return user_id or None


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if current_user_id() is None:
            return jsonify({"success": False, "message": "Please sign in to continue."}), 401
        return view(*args, **kwargs)

    return wrapper


def error_response(e: DomainError):
    if isinstance(e, ValidationError):
        status = 400
    elif isinstance(e, NotFoundError):
        status = 404
    elif isinstance(e, StoreUnreachableError):
        status = 503
    else:
        logger.error("Request failed: %s", e)
        status = 500
    return jsonify({"success": False, "message": str(e)}), status


def int_arg(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")
