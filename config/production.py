import os

from config import env_flag

SECRET_KEY = os.getenv("SECRET_KEY", "please-set-SECRET_KEY")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "attendance"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "attendance_sync"),
}

STORE_BACKEND = os.getenv("STORE_BACKEND", "mysql")

TOKEN_DURATION_SECONDS = int(os.getenv("TOKEN_DURATION_SECONDS", "300"))
LATE_GRACE_MINUTES = int(os.getenv("LATE_GRACE_MINUTES", "5"))
HISTORY_LIMIT = int(os.getenv("HISTORY_LIMIT", "30"))
VERIFY_TIMEOUT_SECONDS = float(os.getenv("VERIFY_TIMEOUT_SECONDS", "10"))

ROTATION_ENABLED = env_flag("ROTATION_ENABLED", "1")
ROTATION_INTERVAL_SECONDS = float(os.getenv("ROTATION_INTERVAL_SECONDS", "5"))

TRUST_USER_HEADER = env_flag("TRUST_USER_HEADER", "0")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
DEBUG = False

AUTO_INIT_DB = env_flag("AUTO_INIT_DB", "0")
