SECRET_KEY = "test-secret"

DEBUG = False
TESTING = True
LOG_LEVEL = "WARNING"

SYNC_ENDPOINT_URL = None
SYNC_API_TOKEN = None
SYNC_TIMEOUT_SECONDS = 1.0
SYNC_INTERVAL_SECONDS = 30.0
MAX_RETRIES = 3
START_ONLINE = True

STORAGE_BACKEND = "memory"
STORAGE_PATH = None

DB_CONFIG = {
    "host": "localhost",
    "port": 3306,
    "user": "root",
    "password": "",
    "database": "attendance_sync_test",
}

AUTO_INIT_DB = False
