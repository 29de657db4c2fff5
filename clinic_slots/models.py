"""Pydantic models for doctors, schedules and bookings.

Field aliases mirror the camelCase keys stored in the realtime database, so
documents can be validated straight from the wire:

    Doctor.model_validate({"id": "doc-1", "isSpecialist": True})

Python code uses the snake_case names.
"""
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from clinic_slots import config
from clinic_slots.errors import InvalidTimeFormat
from clinic_slots.time_labels import format_label, parse_24h


def _coerce_date(value):
    """Accept "YYYY-MM-DD" or a full ISO timestamp and keep the date part only."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and len(value) > 10:
        return value[:10]
    return value


class DocumentModel(BaseModel):
    """Base for stored documents: camelCase aliases, unknown keys ignored."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# =========================================================================
# Generalist weekly availability
# =========================================================================

class TimeRange(DocumentModel):
    """One working window of a generalist's day, in 24-hour "HH:MM"."""
    start_time: str = Field(default="", alias="startTime", description="Window start, e.g. 09:00")
    end_time: str = Field(default="", alias="endTime", description="Window end (exclusive), e.g. 12:00")

    def bounds(self) -> Tuple[int, int]:
        """
        Start and end in minutes since midnight.

        Raises:
            InvalidTimeFormat: If either end is empty or malformed
        """
        return parse_24h(self.start_time), parse_24h(self.end_time)

    def is_valid(self) -> bool:
        """True when both ends parse and the window is not empty."""
        try:
            start, end = self.bounds()
        except InvalidTimeFormat:
            return False
        return start < end


class DaySchedule(DocumentModel):
    """A single weekday in a generalist's weekly schedule."""
    enabled: bool = False
    time_slots: List[TimeRange] = Field(default_factory=list, alias="timeSlots")

    def offers_availability(self) -> bool:
        """A day counts only if enabled with at least one valid window."""
        return self.enabled and any(r.is_valid() for r in self.time_slots)


class WeeklySchedule(DocumentModel):
    """Weekday name to day schedule."""
    sunday: Optional[DaySchedule] = None
    monday: Optional[DaySchedule] = None
    tuesday: Optional[DaySchedule] = None
    wednesday: Optional[DaySchedule] = None
    thursday: Optional[DaySchedule] = None
    friday: Optional[DaySchedule] = None
    saturday: Optional[DaySchedule] = None

    def for_weekday(self, weekday: int) -> Optional[DaySchedule]:
        """Look up a day by index (0 = Sunday)."""
        return getattr(self, config.WEEKDAY_NAMES[weekday])


class Availability(DocumentModel):
    weekly_schedule: Optional[WeeklySchedule] = Field(default=None, alias="weeklySchedule")


# =========================================================================
# Specialist schedules
# =========================================================================

class PracticeLocation(DocumentModel):
    clinic_id: str = Field(..., alias="clinicId")
    room_or_unit: str = Field(default="", alias="roomOrUnit")


class Recurrence(DocumentModel):
    day_of_week: List[int] = Field(default_factory=list, alias="dayOfWeek")
    type: str = "weekly"

    @field_validator("day_of_week")
    @classmethod
    def validate_weekdays(cls, v):
        """Weekdays are 0 (Sunday) to 6 (Saturday)."""
        for day in v:
            if not 0 <= day <= 6:
                raise ValueError(f"dayOfWeek must be between 0 and 6, got {day}")
        return v


class SlotTemplateEntry(DocumentModel):
    default_status: str = Field(default="available", alias="defaultStatus")
    duration_minutes: int = Field(default=config.SLOT_STEP_MINUTES, alias="durationMinutes", gt=0)


class Schedule(DocumentModel):
    """A specialist's recurring, clinic-scoped booking pattern."""
    id: Optional[str] = None
    specialist_id: str = Field(..., alias="specialistId")
    is_active: bool = Field(default=True, alias="isActive")
    valid_from: date = Field(..., alias="validFrom")
    recurrence: Recurrence = Field(default_factory=Recurrence)
    slot_template: Dict[str, SlotTemplateEntry] = Field(default_factory=dict, alias="slotTemplate")
    practice_location: Optional[PracticeLocation] = Field(default=None, alias="practiceLocation")
    schedule_type: str = Field(default="Weekly", alias="scheduleType")

    @field_validator("valid_from", mode="before")
    @classmethod
    def normalize_valid_from(cls, v):
        return _coerce_date(v)

    def has_started(self, day: date) -> bool:
        """Active and already in effect on ``day`` (date-only comparison)."""
        return self.is_active and self.valid_from <= day

    def is_active_on(self, day: date) -> bool:
        """Active, in effect, and recurring on ``day``'s weekday."""
        return self.has_started(day) and weekday_index(day) in self.recurrence.day_of_week


# =========================================================================
# Doctors and clinics
# =========================================================================

class Doctor(DocumentModel):
    id: str
    first_name: str = Field(default="", alias="firstName")
    last_name: str = Field(default="", alias="lastName")
    specialty: str = ""
    is_specialist: bool = Field(default=False, alias="isSpecialist")
    availability: Optional[Availability] = None
    clinic_affiliations: List[str] = Field(default_factory=list, alias="clinicAffiliations")
    # None until the specialist's schedules have been fetched
    schedules: Optional[List[Schedule]] = Field(default=None, exclude=True)

    @property
    def weekly_schedule(self) -> Optional[WeeklySchedule]:
        if self.availability is None:
            return None
        return self.availability.weekly_schedule

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Clinic(DocumentModel):
    id: str
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None


# =========================================================================
# Bookings
# =========================================================================

class Appointment(DocumentModel):
    """A direct booking against a doctor."""
    id: Optional[str] = None
    doctor_id: str = Field(..., alias="doctorId")
    patient_id: Optional[str] = Field(default=None, alias="patientId")
    clinic_id: Optional[str] = Field(default=None, alias="clinicId")
    appointment_date: date = Field(..., alias="appointmentDate")
    appointment_time: str = Field(..., alias="appointmentTime")
    status: str = "pending"
    type: str = "general_consultation"

    @field_validator("appointment_date", mode="before")
    @classmethod
    def normalize_appointment_date(cls, v):
        return _coerce_date(v)

    def occupies_slot(self) -> bool:
        """Anything but a cancelled appointment holds its slot."""
        return self.status not in config.APPOINTMENT_INACTIVE_STATUSES


class Referral(DocumentModel):
    """A booking routed to a specialist."""
    id: Optional[str] = None
    assigned_specialist_id: str = Field(..., alias="assignedSpecialistId")
    patient_id: Optional[str] = Field(default=None, alias="patientId")
    appointment_date: date = Field(..., alias="appointmentDate")
    appointment_time: str = Field(..., alias="appointmentTime")
    status: str = "pending"
    practice_location: Optional[PracticeLocation] = Field(default=None, alias="practiceLocation")

    @field_validator("appointment_date", mode="before")
    @classmethod
    def normalize_appointment_date(cls, v):
        return _coerce_date(v)

    def occupies_slot(self) -> bool:
        """Pending, confirmed and completed referrals hold their slot."""
        return self.status in config.REFERRAL_BLOCKING_STATUSES


# =========================================================================
# Derived values (never persisted)
# =========================================================================

class CandidateSlot(BaseModel):
    """A slot a doctor could work, before booking state is known."""
    minutes: int = Field(..., ge=0, description="Minutes since midnight (join key)")
    duration_minutes: int = Field(default=config.SLOT_STEP_MINUTES, gt=0)

    @property
    def time(self) -> str:
        """12-hour display label."""
        return format_label(self.minutes)


class Slot(CandidateSlot):
    is_booked: bool = False

    def to_display(self) -> Dict[str, object]:
        """Presentation payload: ``{"time", "minutes", "isBooked"}``."""
        return {"time": self.time, "minutes": self.minutes, "isBooked": self.is_booked}


class CalendarDate(BaseModel):
    """A day in the rolling booking horizon."""
    day: date
    day_name: str = Field(..., description="Short weekday name, e.g. Mon")
    month: str = Field(..., description="Short month name, e.g. Jan")
    day_of_month: int
    is_today: bool = False

    @property
    def weekday(self) -> int:
        """0 = Sunday ... 6 = Saturday."""
        return weekday_index(self.day)


def weekday_index(day: date) -> int:
    """Weekday with Sunday as 0, the convention stored in schedules."""
    return (day.weekday() + 1) % 7
