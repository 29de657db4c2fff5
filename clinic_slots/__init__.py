"""Slot availability and booking conflicts for clinic appointments."""
from clinic_slots.conflicts import BookedSlots, BookingConflictResolver
from clinic_slots.config import FetchErrorPolicy
from clinic_slots.datasource import DataSource, InMemoryDataSource, RealtimeDatabaseClient
from clinic_slots.date_window import build_date_horizon, filter_dates
from clinic_slots.engine import AvailabilityResult, SlotAvailabilityEngine, SlotLocation
from clinic_slots.errors import (
    AvailabilityError,
    DoctorNotFound,
    FetchFailure,
    InvalidTimeFormat,
    NoScheduleForDate,
    SlotAlreadyBooked
)
from clinic_slots.schedule_adapter import resolve_available_weekdays, resolve_day_slots
from clinic_slots.session import BookingSession

__all__ = [
    "AvailabilityError",
    "AvailabilityResult",
    "BookedSlots",
    "BookingConflictResolver",
    "BookingSession",
    "DataSource",
    "DoctorNotFound",
    "FetchErrorPolicy",
    "FetchFailure",
    "InMemoryDataSource",
    "InvalidTimeFormat",
    "NoScheduleForDate",
    "RealtimeDatabaseClient",
    "SlotAlreadyBooked",
    "SlotAvailabilityEngine",
    "SlotLocation",
    "build_date_horizon",
    "filter_dates",
    "resolve_available_weekdays",
    "resolve_day_slots",
]
