import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./tasuke.db")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

# Frontend base URL for redirects
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

# Comma separated list of origins allowed by CORS
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", f"{FRONTEND_URL},http://localhost:3000").split(",")

# Google Calendar OAuth Configuration
# OAuth flow: Google → Frontend → Frontend sends code to Backend API
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET")
GOOGLE_REDIRECT_URI = os.getenv("GOOGLE_REDIRECT_URI", f"{FRONTEND_URL}/auth/google-calendar")

# Scheduling
# All calendar-day and working-hour arithmetic happens in this civil time zone
SCHEDULE_TIMEZONE = os.getenv("SCHEDULE_TIMEZONE", "Asia/Tokyo")
DEFAULT_WORK_START_HOUR = int(os.getenv("DEFAULT_WORK_START_HOUR", "9"))
DEFAULT_WORK_END_HOUR = int(os.getenv("DEFAULT_WORK_END_HOUR", "18"))
DEFAULT_SKIP_WEEKENDS = os.getenv("DEFAULT_SKIP_WEEKENDS", "true").lower() == "true"
# "now" is rounded up to this many minutes before computing free slots
SCHEDULE_SLOT_ROUNDING_MINUTES = int(os.getenv("SCHEDULE_SLOT_ROUNDING_MINUTES", "15"))
# Maximum number of tasks reported as missing a due date or estimate
UNESTIMATED_TASKS_LIMIT = int(os.getenv("UNESTIMATED_TASKS_LIMIT", "20"))
CALENDAR_EVENT_PREFIX = os.getenv("CALENDAR_EVENT_PREFIX", "[tasuke]")
