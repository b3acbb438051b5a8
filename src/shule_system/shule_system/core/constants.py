"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_SESSION_DAYS = 7
DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 25
MAX_PAGE_SIZE = 100
DEFAULT_CURRENCY = "TZS"
DEFAULT_NATIONALITY = "Tanzanian"

# Hostel statistics cache windows (seconds).
HOSTEL_STATS_FRESH_SECONDS = 300
HOSTEL_STATS_STALE_SECONDS = 600

MIN_PASSWORD_LENGTH = 6
MAX_CONTENT_UPLOAD_MB = 100
UPCOMING_DUE_DAYS = 30
