"""Building specialist schedules from the schedule form.

A specialist picks a clinic, a room, the weekdays, a start and end time
and a slot length. The form becomes a Schedule whose slot template holds
one entry per slot start.
"""
from datetime import date
from typing import Dict, List

from pydantic import BaseModel, Field, field_validator, model_validator

from clinic_slots import config
from clinic_slots.errors import InvalidTimeFormat
from clinic_slots.logging_config import get_logger
from clinic_slots.models import PracticeLocation, Recurrence, Schedule, SlotTemplateEntry
from clinic_slots.time_labels import expand_range, format_label, parse_label

logger = get_logger(__name__)


def build_slot_template(
    start_time: str,
    end_time: str,
    duration_minutes: int = config.SLOT_STEP_MINUTES
) -> Dict[str, SlotTemplateEntry]:
    """
    Slot template from ``start_time`` up to (not including) ``end_time``.

    Times may be "9:00 AM" or "09:00". Keys are display labels in time order.

    Raises:
        InvalidTimeFormat: Unparseable times, or end not after start
        ValueError: Non-positive duration
    """
    start = parse_label(start_time)
    end = parse_label(end_time)
    if end <= start:
        raise InvalidTimeFormat(end_time, expected=f"a time after {start_time}")

    return {
        format_label(minutes): SlotTemplateEntry(
            default_status="available",
            duration_minutes=duration_minutes
        )
        for minutes in expand_range(start, end, duration_minutes)
    }


class ScheduleForm(BaseModel):
    """Input of the "add schedule" form."""
    clinic_id: str = Field(..., min_length=1)
    room_or_unit: str
    valid_from: date
    days_of_week: List[int] = Field(..., min_length=1)
    start_time: str
    end_time: str
    slot_duration: int = Field(default=config.SLOT_STEP_MINUTES, gt=0)

    @field_validator("room_or_unit")
    @classmethod
    def validate_room(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Room or unit is required")
        return v

    @field_validator("days_of_week")
    @classmethod
    def validate_days(cls, v: List[int]) -> List[int]:
        for day in v:
            if not 0 <= day <= 6:
                raise ValueError(f"Day of week must be between 0 and 6, got {day}")
        return sorted(set(v))

    @model_validator(mode="after")
    def validate_times(self):
        try:
            start = parse_label(self.start_time)
            end = parse_label(self.end_time)
        except InvalidTimeFormat as e:
            raise ValueError(str(e)) from e
        if end <= start:
            raise ValueError("End time must be after start time")
        return self

    def to_schedule(self, specialist_id: str) -> Schedule:
        """New active schedule for ``specialist_id`` (id assigned on save)."""
        schedule = Schedule(
            specialist_id=specialist_id,
            is_active=True,
            valid_from=self.valid_from,
            recurrence=Recurrence(day_of_week=self.days_of_week, type="weekly"),
            slot_template=build_slot_template(self.start_time, self.end_time, self.slot_duration),
            practice_location=PracticeLocation(
                clinic_id=self.clinic_id,
                room_or_unit=self.room_or_unit
            ),
            schedule_type="Weekly"
        )
        logger.info(
            "schedule_built",
            specialist_id=specialist_id,
            clinic_id=self.clinic_id,
            days_of_week=self.days_of_week,
            slots=len(schedule.slot_template)
        )
        return schedule
