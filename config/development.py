import os

from config import env_flag

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "attendance_sync"),
}

# "mysql" or "memory" (no database, state lost on restart)
STORE_BACKEND = os.getenv("STORE_BACKEND", "mysql")

TOKEN_DURATION_SECONDS = int(os.getenv("TOKEN_DURATION_SECONDS", "300"))
LATE_GRACE_MINUTES = int(os.getenv("LATE_GRACE_MINUTES", "5"))
HISTORY_LIMIT = int(os.getenv("HISTORY_LIMIT", "30"))
VERIFY_TIMEOUT_SECONDS = float(os.getenv("VERIFY_TIMEOUT_SECONDS", "10"))

ROTATION_ENABLED = env_flag("ROTATION_ENABLED", "1")
ROTATION_INTERVAL_SECONDS = float(os.getenv("ROTATION_INTERVAL_SECONDS", "5"))

# Accept X-User-Id from a trusted proxy in front of the app.
TRUST_USER_HEADER = env_flag("TRUST_USER_HEADER", "1")

LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")
DEBUG = True

# Apply database/schema.sql on startup (idempotent: CREATE TABLE IF NOT EXISTS)
AUTO_INIT_DB = env_flag("AUTO_INIT_DB", "1")
