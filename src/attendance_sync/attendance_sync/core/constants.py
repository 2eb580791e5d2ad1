"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

STORAGE_KEY = "attendance_records"

DEFAULT_SYNC_INTERVAL_SECONDS = 30.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_SYNC_TIMEOUT_SECONDS = 10.0

OFFLINE_ERROR = "offline"
DEFAULT_SYNC_ERROR = "Sync failed"
