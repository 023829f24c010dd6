import os

SECRET_KEY = os.getenv("SECRET_KEY", "please-set-SECRET_KEY")

REMOTE_URL = os.getenv("REMOTE_URL", "")
REMOTE_TIMEOUT_SECONDS = float(os.getenv("REMOTE_TIMEOUT_SECONDS", "30"))

CACHE_DIR = os.getenv("CACHE_DIR", "/var/cache/attendance-ledger")
CACHE_NAMESPACE = os.getenv("CACHE_NAMESPACE", "frequencia_escolar_cache_v2")

RISK_THRESHOLD = float(os.getenv("RISK_THRESHOLD", "75"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

DEBUG = False

AUTO_REFRESH = bool(int(os.getenv("AUTO_REFRESH", "1")))
