"""Configuration for slot availability.

Scheduling policy lives here - modify as needed without touching code.
Deployment values come from the environment (or a local .env file).
"""
import os
from enum import Enum

from dotenv import load_dotenv

load_dotenv()


class FetchErrorPolicy(str, Enum):
    """What to assume about bookings when the booking fetch fails."""
    FAIL_OPEN = "fail-open"  # Nothing booked
    FAIL_CLOSED = "fail-closed"  # Block the date


# Slot generation
SLOT_STEP_MINUTES = 20

# Generalists without an enabled weekly window get this window (last slot inclusive)
DEFAULT_WINDOW_START = "09:00"
DEFAULT_WINDOW_LAST = "17:00"

# Rolling calendar offered to the user
DATE_HORIZON_DAYS = 30

WEEKDAY_NAMES = [
    "sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday"
]

# Booking status rules
APPOINTMENT_INACTIVE_STATUSES = frozenset({"cancelled"})
REFERRAL_BLOCKING_STATUSES = frozenset({"pending", "confirmed", "completed"})
# Deleting a schedule is only blocked by bookings that were actually accepted
DELETE_BLOCKING_STATUSES = frozenset({"confirmed", "completed"})

# Realtime database
REALTIME_DB_URL = os.getenv("REALTIME_DB_URL", "http://localhost:5000")
REALTIME_DB_AUTH = os.getenv("REALTIME_DB_AUTH")
HTTP_TIMEOUT_SECONDS = int(os.getenv("HTTP_TIMEOUT_SECONDS", "15"))

BOOKING_FETCH_ERROR_POLICY = FetchErrorPolicy(
    os.getenv("BOOKING_FETCH_ERROR_POLICY", FetchErrorPolicy.FAIL_CLOSED.value)
)

# Doctor and schedule documents change rarely; bookings are never cached
SCHEDULE_CACHE_TTL_SECONDS = int(os.getenv("SCHEDULE_CACHE_TTL_SECONDS", "300"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Mock API
MOCK_API_PORT = int(os.getenv("MOCK_API_PORT", "5000"))
# Optional JSON export ({"doctors": ..., "specialistSchedules": ...}) loaded at startup
MOCK_API_SEED = os.getenv("MOCK_API_SEED")
