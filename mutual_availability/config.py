import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./availability.db")

# Security - token decryption key for stored calendar connections
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

# Redis busy-data cache
BUSY_CACHE_ENABLED = os.getenv("BUSY_CACHE_ENABLED", "false").lower() == "true"
BUSY_CACHE_TTL_SECONDS = int(os.getenv("BUSY_CACHE_TTL_SECONDS", "300"))

# Provider fan-out: each (user, provider) fetch gets its own timeout
PROVIDER_FETCH_TIMEOUT_SECONDS = float(os.getenv("PROVIDER_FETCH_TIMEOUT_SECONDS", "10.0"))

# Slot generation
SLOT_STEP_MINUTES = int(os.getenv("SLOT_STEP_MINUTES", "30"))
MIN_DURATION_MINUTES = int(os.getenv("MIN_DURATION_MINUTES", "15"))
MAX_DURATION_MINUTES = int(os.getenv("MAX_DURATION_MINUTES", "720"))

# Rating policy
RATING_BUFFER_MINUTES = int(os.getenv("RATING_BUFFER_MINUTES", "30"))
EXCELLENT_MIN_DURATION_MINUTES = 120
GOOD_MIN_DURATION_MINUTES = 90

# Open-window search drops gaps shorter than this
MIN_OPEN_WINDOW_MINUTES = 30

# Alternative suggestions
SUGGESTION_LIMIT_PER_STRATEGY = 3
SUGGESTION_EXTENSION_DAYS = 14
SUGGESTION_MIN_DURATION_MINUTES = 30

# All provider instants are normalised into this single reference calendar
REFERENCE_TIMEZONE = os.getenv("REFERENCE_TIMEZONE", "UTC")

# Calendar provider APIs
GOOGLE_CALENDAR_API = os.getenv("GOOGLE_CALENDAR_API", "https://www.googleapis.com/calendar/v3")
MICROSOFT_GRAPH_API = os.getenv("MICROSOFT_GRAPH_API", "https://graph.microsoft.com/v1.0")

# Default preference hours, as (start_hour, start_minute, end_hour, end_minute).
# Business hours apply to ad-hoc mutual searches with no preferences supplied;
# couple hours apply to a relationship that has never saved preferences.
DEFAULT_BUSINESS_HOURS = (9, 0, 17, 0)
DEFAULT_COUPLE_HOURS = (9, 0, 21, 0)
