import os
import tempfile

SECRET_KEY = "test-secret"

REMOTE_URL = ""
REMOTE_TIMEOUT_SECONDS = 5.0

CACHE_DIR = os.getenv("CACHE_DIR", tempfile.gettempdir())
CACHE_NAMESPACE = "attendance_ledger_test_cache"

RISK_THRESHOLD = 75.0

LOG_LEVEL = "WARNING"

DEBUG = False
TESTING = True

AUTO_REFRESH = False
