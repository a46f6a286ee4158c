"""Application constants and configuration values."""

from core.config import FRONTEND_URL

# Database field lengths
MAX_STRING_LENGTH = 255
MAX_TITLE_LENGTH = 200
MAX_NOTES_LENGTH = 1000

# Database connection settings
DB_POOL_RECYCLE_SECONDS = 300  # 5 minutes

# CORS origins for development and production
_CORS_ORIGINS_RAW = [
    "http://localhost:5173",      # React dev server (Vite)
    FRONTEND_URL,
]

# Filter out None values and empty strings to avoid CORS errors
CORS_ORIGINS = [origin for origin in _CORS_ORIGINS_RAW if origin and origin.strip()]

# Weekday names indexed by date.weekday() (0=Monday)
WEEKDAY_NAMES = [
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
]

# Clinic schedule defaults (applied when a clinic has no scheduling settings yet)
DEFAULT_WORKING_DAYS = ["monday", "tuesday", "wednesday", "thursday", "friday"]
DEFAULT_WORK_START = "08:00"
DEFAULT_WORK_END = "18:00"
DEFAULT_LUNCH_START = "12:00"
DEFAULT_LUNCH_END = "13:00"

# Appointment duration bounds (minutes)
MIN_APPOINTMENT_DURATION_MINUTES = 15
MAX_APPOINTMENT_DURATION_MINUTES = 480

# Slot period boundaries used when grouping slots for presentation
AFTERNOON_STARTS_AT_HOUR = 12
EVENING_STARTS_AT_HOUR = 18

# Alternative slots offered when a booking is rejected
DEFAULT_SUGGESTION_COUNT = 3
SUGGESTION_SEARCH_DAYS = 14

# Appointment listing
DEFAULT_APPOINTMENT_LIST_LIMIT = 50
MAX_APPOINTMENT_LIST_LIMIT = 200
