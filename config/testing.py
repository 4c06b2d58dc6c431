import os

SECRET_KEY = "test-secret"

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "attendance_sync_test"),
}

STORE_BACKEND = "memory"

TOKEN_DURATION_SECONDS = 300
LATE_GRACE_MINUTES = 5
HISTORY_LIMIT = 30
VERIFY_TIMEOUT_SECONDS = None

ROTATION_ENABLED = False
ROTATION_INTERVAL_SECONDS = 5.0

TRUST_USER_HEADER = True

LOG_LEVEL = "WARNING"
DEBUG = False
TESTING = True

AUTO_INIT_DB = False
