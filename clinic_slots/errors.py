"""Availability error taxonomy.

Every error carries a ``user_message`` that the booking screen can show
as-is next to a retry action.
"""
from typing import Optional


class AvailabilityError(Exception):
    """Base class for slot availability errors."""

    user_message = "Something went wrong. Please try again."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.user_message)


class DoctorNotFound(AvailabilityError):
    """Raised when a doctor id does not resolve."""

    user_message = "Failed to load doctor data. Please try again."

    def __init__(self, doctor_id: str):
        self.doctor_id = doctor_id
        super().__init__(f"Doctor '{doctor_id}' not found")


class NoScheduleForDate(AvailabilityError):
    """Specialist has no active schedule on the selected date."""

    user_message = "No available schedule for this date. Please select a different date."

    def __init__(self, doctor_id: str, date_str: str):
        self.doctor_id = doctor_id
        self.date = date_str
        super().__init__(
            f"No active schedule for specialist '{doctor_id}' on {date_str}"
        )


class FetchFailure(AvailabilityError):
    """A read against the realtime database failed."""

    user_message = "Failed to load availability. Please try again."

    def __init__(self, source: str, detail: str = ""):
        self.source = source
        self.detail = detail
        message = f"Failed to fetch {source} data"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class InvalidTimeFormat(AvailabilityError, ValueError):
    """A stored or submitted time string could not be parsed."""

    user_message = "Invalid time format."

    def __init__(self, value: object, expected: str = "HH:MM"):
        self.value = value
        super().__init__(f"Invalid time '{value}' (expected {expected})")


class SlotAlreadyBooked(AvailabilityError):
    """Raised when a caller tries to select or book a taken slot."""

    def __init__(self, time_label: str, date_str: Optional[str] = None):
        self.time = time_label
        self.date = date_str
        when = f"{time_label} on {date_str}" if date_str else time_label
        self.user_message = (
            f"The {when} slot has already been booked. Please choose another time."
        )
        super().__init__(f"Slot {when} is already booked")
