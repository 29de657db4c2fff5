"""Whether a specialist schedule may still be edited or deleted.

A schedule is locked by bookings that fall on one of its weekdays at one
of its template times. Editing is blocked by anything still holding a
slot on or after the (new) valid-from date; deleting is blocked only by
accepted bookings from today onward.
"""
from datetime import date
from typing import Iterable, Optional, Set, Union

from clinic_slots import config
from clinic_slots.errors import InvalidTimeFormat
from clinic_slots.logging_config import get_logger
from clinic_slots.models import Appointment, Referral, Schedule, weekday_index
from clinic_slots.schedule_adapter import template_slots
from clinic_slots.time_labels import parse_label

logger = get_logger(__name__)

Booking = Union[Appointment, Referral]


def _matches_pattern(schedule: Schedule, template_minutes: Set[int], booking: Booking, earliest: date) -> bool:
    if booking.appointment_date < earliest:
        return False
    if weekday_index(booking.appointment_date) not in schedule.recurrence.day_of_week:
        return False
    try:
        return parse_label(booking.appointment_time) in template_minutes
    except InvalidTimeFormat:
        return False


def _first_conflict(
    schedule: Schedule,
    bookings: Iterable[Booking],
    earliest: date
) -> Optional[Booking]:
    template_minutes = {s.minutes for s in template_slots(schedule)}
    return next(
        (b for b in bookings if _matches_pattern(schedule, template_minutes, b, earliest)),
        None
    )


def can_schedule_be_modified(
    schedule: Schedule,
    referrals: Iterable[Referral],
    appointments: Iterable[Appointment],
    new_valid_from: Optional[date] = None
) -> bool:
    """
    False when a live booking already uses this schedule's pattern.

    Live bookings are pending/confirmed/completed referrals and
    non-cancelled appointments dated on or after ``new_valid_from``
    (or the schedule's own valid-from date).
    """
    earliest = new_valid_from or schedule.valid_from
    holding = [r for r in referrals if r.occupies_slot()]
    holding += [a for a in appointments if a.occupies_slot()]

    conflict = _first_conflict(schedule, holding, earliest)
    if conflict is not None:
        logger.info(
            "schedule_locked_for_edit",
            schedule_id=schedule.id,
            booking_id=conflict.id,
            date=conflict.appointment_date.isoformat(),
            time=conflict.appointment_time
        )
        return False
    return True


def can_schedule_be_deleted(
    schedule: Schedule,
    referrals: Iterable[Referral],
    appointments: Iterable[Appointment],
    today: Optional[date] = None
) -> bool:
    """False when a confirmed or completed booking from today on uses this schedule."""
    today = today or date.today()
    accepted = [
        b for b in [*referrals, *appointments]
        if b.status in config.DELETE_BLOCKING_STATUSES
    ]

    conflict = _first_conflict(schedule, accepted, today)
    if conflict is not None:
        logger.info(
            "schedule_locked_for_delete",
            schedule_id=schedule.id,
            booking_id=conflict.id,
            date=conflict.appointment_date.isoformat(),
            time=conflict.appointment_time
        )
        return False
    return True
