"""Time-of-day parsing and formatting.

Slots and bookings are matched on minutes since midnight. Display labels
("9:20 AM") are produced only for presentation, so "09:20 AM", "9:20 AM"
and "09:20" all refer to the same slot.
"""
import re
from typing import List

from clinic_slots.errors import InvalidTimeFormat

MINUTES_PER_DAY = 24 * 60

_TIME_24H = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")
_TIME_12H = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*([AaPp][Mm])\s*$")


def parse_24h(value: str) -> int:
    """
    Parse a 24-hour "HH:MM" string into minutes since midnight.

    Raises:
        InvalidTimeFormat: If the value is empty, malformed or out of range
    """
    if not isinstance(value, str):
        raise InvalidTimeFormat(value)

    match = _TIME_24H.match(value)
    if not match:
        raise InvalidTimeFormat(value)

    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise InvalidTimeFormat(value)

    return hour * 60 + minute


def parse_label(value: str) -> int:
    """
    Parse a display label into minutes since midnight.

    Accepts "9:00 AM", "09:00 am" and plain 24-hour "09:00".

    Raises:
        InvalidTimeFormat: If the value cannot be parsed
    """
    if not isinstance(value, str):
        raise InvalidTimeFormat(value, expected="h:mm AM/PM")

    match = _TIME_12H.match(value)
    if not match:
        try:
            return parse_24h(value)
        except InvalidTimeFormat:
            raise InvalidTimeFormat(value, expected="h:mm AM/PM") from None

    hour, minute = int(match.group(1)), int(match.group(2))
    period = match.group(3).upper()
    if not 1 <= hour <= 12 or minute > 59:
        raise InvalidTimeFormat(value, expected="h:mm AM/PM")

    if period == "PM" and hour != 12:
        hour += 12
    elif period == "AM" and hour == 12:
        hour = 0

    return hour * 60 + minute


def format_label(minutes: int) -> str:
    """Convert minutes since midnight to a 12-hour label ("1:40 PM")."""
    hour, minute = divmod(minutes % MINUTES_PER_DAY, 60)
    period = "AM" if hour < 12 else "PM"
    return f"{hour % 12 or 12}:{minute:02d} {period}"


def expand_range(start: int, end: int, step: int) -> List[int]:
    """Slot starts from ``start`` in ``step`` increments, strictly before ``end``."""
    if step <= 0:
        raise ValueError("step must be positive")
    return list(range(start, end, step))
