"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_LESSON_COUNT = 1
DEFAULT_RISK_THRESHOLD = 75.0
DEFAULT_CACHE_NAMESPACE = "frequencia_escolar_cache_v2"
DEFAULT_REMOTE_TIMEOUT_SECONDS = 30

LESSON_COUNT_SETTING_PREFIX = "lessonCount_"

# Filter value meaning "no restriction" for class/subject selectors.
ALL = "ALL"
