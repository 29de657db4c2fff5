"""Turn a doctor's schedule data into candidate slots for a date.

Generalists store a weekly schedule (per-weekday enabled flag plus "HH:MM"
windows). Specialists store discrete schedule records, each with a weekday
recurrence and a slot template. Both are normalized here into an ordered
list of CandidateSlot, independent of what has already been booked.

Nothing in this module raises for missing data: empty results come back
with an explicit error value the caller can show or ignore.
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, List, Optional, Set

from clinic_slots import config
from clinic_slots.errors import AvailabilityError, InvalidTimeFormat, NoScheduleForDate
from clinic_slots.logging_config import get_logger
from clinic_slots.models import (
    CandidateSlot,
    Doctor,
    Schedule,
    TimeRange,
    weekday_index
)
from clinic_slots.time_labels import expand_range, parse_24h, parse_label

logger = get_logger(__name__)


@dataclass
class DaySlots:
    """Candidate slots for one doctor on one date."""
    slots: List[CandidateSlot] = field(default_factory=list)
    schedule: Optional[Schedule] = None  # Specialist schedule the slots came from
    used_default_window: bool = False
    error: Optional[AvailabilityError] = None


def default_window_slots(step: int = config.SLOT_STEP_MINUTES) -> List[CandidateSlot]:
    """Fallback window for generalists: 9:00 AM through 5:00 PM inclusive."""
    start = parse_24h(config.DEFAULT_WINDOW_START)
    last = parse_24h(config.DEFAULT_WINDOW_LAST)
    return [
        CandidateSlot(minutes=m, duration_minutes=step)
        for m in expand_range(start, last + 1, step)
    ]


def expand_time_ranges(
    ranges: Iterable[TimeRange],
    step: int = config.SLOT_STEP_MINUTES
) -> List[CandidateSlot]:
    """
    Expand "HH:MM" windows into slots, in stored order.

    Malformed windows are skipped, not fatal.
    """
    slots = []
    for time_range in ranges:
        try:
            start, end = time_range.bounds()
        except InvalidTimeFormat as e:
            logger.warning(
                "skipping_invalid_time_range",
                start_time=time_range.start_time,
                end_time=time_range.end_time,
                error=str(e)
            )
            continue
        slots.extend(
            CandidateSlot(minutes=m, duration_minutes=step)
            for m in expand_range(start, end, step)
        )
    return slots


def template_slots(schedule: Schedule) -> List[CandidateSlot]:
    """Slots of a specialist schedule, in template order."""
    slots = []
    seen = set()
    for label, entry in schedule.slot_template.items():
        try:
            minutes = parse_label(label)
        except InvalidTimeFormat as e:
            logger.warning("skipping_invalid_template_slot", schedule_id=schedule.id, label=label, error=str(e))
            continue
        # "09:00 AM" and "9:00 AM" are the same slot
        if minutes in seen:
            continue
        seen.add(minutes)
        slots.append(CandidateSlot(minutes=minutes, duration_minutes=entry.duration_minutes))
    return slots


def find_active_schedule(schedules: Iterable[Schedule], day: date) -> Optional[Schedule]:
    """First schedule that is active, in effect and recurring on ``day``."""
    return next((s for s in schedules if s.is_active_on(day)), None)


def resolve_day_slots(doctor: Doctor, day: date) -> DaySlots:
    """
    Candidate slots for ``doctor`` on ``day``.

    Specialists: slots of the schedule active on that date, or an empty
    result carrying NoScheduleForDate. Generalists: the enabled weekly
    windows for that weekday, or the default daytime window.
    """
    if doctor.is_specialist:
        schedule = find_active_schedule(doctor.schedules or [], day)
        if schedule is None:
            logger.info("no_schedule_for_date", doctor_id=doctor.id, date=day.isoformat())
            return DaySlots(error=NoScheduleForDate(doctor.id, day.isoformat()))
        return DaySlots(slots=template_slots(schedule), schedule=schedule)

    weekly = doctor.weekly_schedule
    day_schedule = weekly.for_weekday(weekday_index(day)) if weekly else None
    if day_schedule is None or not day_schedule.offers_availability():
        return DaySlots(slots=default_window_slots(), used_default_window=True)

    return DaySlots(slots=expand_time_ranges(day_schedule.time_slots))


def resolve_available_weekdays(doctor: Doctor, today: Optional[date] = None) -> Set[int]:
    """
    Weekdays (0 = Sunday) on which the doctor works at all.

    Specialists: union of recurrence days over schedules already in effect
    today. Generalists: enabled days with at least one valid window.
    """
    today = today or date.today()

    if doctor.is_specialist:
        days = set()
        for schedule in doctor.schedules or []:
            if schedule.has_started(today):
                days.update(schedule.recurrence.day_of_week)
        return days

    weekly = doctor.weekly_schedule
    if weekly is None:
        return set()
    days = set()
    for index in range(7):
        day_schedule = weekly.for_weekday(index)
        if day_schedule is not None and day_schedule.offers_availability():
            days.add(index)
    return days


def find_schedule_for_slot(
    schedules: Iterable[Schedule],
    day: date,
    minutes: int
) -> Optional[Schedule]:
    """Active schedule on ``day`` whose template contains the slot (room lookup)."""
    for schedule in schedules:
        if schedule.is_active_on(day) and any(s.minutes == minutes for s in template_slots(schedule)):
            return schedule
    return None


def primary_clinic_id(schedules: Iterable[Schedule], today: Optional[date] = None) -> Optional[str]:
    """Clinic of the most recently started active schedule that names one."""
    today = today or date.today()
    started = [s for s in schedules if s.has_started(today) and s.practice_location is not None]
    if not started:
        return None
    latest = max(started, key=lambda s: s.valid_from)
    return latest.practice_location.clinic_id
