"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

EARTH_RADIUS_M = 6_371_000.0

DEFAULT_TOKEN_DURATION_SECONDS = 300
DEFAULT_LATE_GRACE_MINUTES = 5
DEFAULT_HISTORY_LIMIT = 30
MAX_HISTORY_LIMIT = 200
DEFAULT_VERIFY_TIMEOUT_SECONDS = 10.0
DEFAULT_ROTATION_INTERVAL_SECONDS = 5.0
DEFAULT_SYNC_ATTEMPTS = 3
DEFAULT_SYNC_BASE_DELAY_SECONDS = 0.5

MYSQL_DUPLICATE_KEY_ERRNO = 1062
