from __future__ import annotations

import atexit
import importlib
import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask

from config import get_settings_module

from .attendance.controller import register as register_attendance
from .common.logging_utils import configure_logging
from .container import build_container
from .database.bootstrap import apply_schema, list_tables
from .sessions.controller import register as register_sessions
from .tokens.controller import register as register_tokens

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).resolve().parents[3] / "database" / "schema.sql"


def create_app(overrides: Optional[dict] = None) -> Flask:
    """Application factory. `overrides` replace settings values (used by tests)."""
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    values = {name: getattr(settings, name) for name in dir(settings) if name.isupper()}
    values.update(overrides or {})

    configure_logging(values.get("LOG_LEVEL", "INFO"))

    app.secret_key = values["SECRET_KEY"]
    app.config["DEBUG"] = bool(values.get("DEBUG", False))
    app.config["TESTING"] = bool(values.get("TESTING", False))
    app.config["TRUST_USER_HEADER"] = bool(values.get("TRUST_USER_HEADER", False))
    app.config["HISTORY_LIMIT"] = int(values.get("HISTORY_LIMIT", 30))
    app.config["VERIFY_TIMEOUT_SECONDS"] = values.get("VERIFY_TIMEOUT_SECONDS")

    backend = str(values.get("STORE_BACKEND", "mysql")).lower()
    db_config = values.get("DB_CONFIG")
    logger.info("settings=%s backend=%s", settings_module, backend)

    if backend == "mysql" and values.get("AUTO_INIT_DB"):
        apply_schema(db_config, schema_path=SCHEMA_PATH)
        logger.info("Schema ready (tables=%d)", len(list_tables(db_config)))

    container = build_container(
        db_config=db_config,
        backend=backend,
        token_duration_seconds=int(values.get("TOKEN_DURATION_SECONDS", 300)),
        late_grace_minutes=int(values.get("LATE_GRACE_MINUTES", 5)),
        rotation_interval_seconds=float(values.get("ROTATION_INTERVAL_SECONDS", 5.0)),
    )
    app.extensions["attendance_sync"] = container

    register_sessions(app, container)
    register_tokens(app, container)
    register_attendance(app, container)

    if values.get("ROTATION_ENABLED"):
        container.rotation_worker.start()
        atexit.register(container.rotation_worker.stop, 1.0)
    if app.config["VERIFY_TIMEOUT_SECONDS"] is not None:
        # Only timed verification uses the worker pool.
        atexit.register(container.verification_service.shutdown)

    return app
