"""Rolling booking horizon and weekday filtering.

The booking screen offers the next 30 days. Before any slots are computed
the list is narrowed to weekdays the doctor actually works, for generalists
and specialists alike.
"""
from datetime import date, timedelta
from typing import List, Optional, Sequence, TypeVar, Union

from clinic_slots import config
from clinic_slots.logging_config import get_logger
from clinic_slots.models import CalendarDate, Doctor, weekday_index
from clinic_slots.schedule_adapter import resolve_available_weekdays

logger = get_logger(__name__)

DateLike = TypeVar("DateLike", date, CalendarDate)

_DAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
_MONTH_NAMES = [
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"
]


def build_date_horizon(
    today: Optional[date] = None,
    days: int = config.DATE_HORIZON_DAYS
) -> List[CalendarDate]:
    """Consecutive calendar dates starting today."""
    today = today or date.today()
    horizon = []
    for offset in range(days):
        day = today + timedelta(days=offset)
        horizon.append(CalendarDate(
            day=day,
            day_name=_DAY_NAMES[weekday_index(day)],
            month=_MONTH_NAMES[day.month - 1],
            day_of_month=day.day,
            is_today=offset == 0
        ))
    return horizon


def _weekday_of(item: Union[date, CalendarDate]) -> int:
    if isinstance(item, CalendarDate):
        return item.weekday
    return weekday_index(item)


def availability_loaded(doctor: Optional[Doctor]) -> bool:
    """Whether enough data has arrived to know the doctor's working weekdays."""
    if doctor is None:
        return False
    return not doctor.is_specialist or doctor.schedules is not None


def filter_dates(
    doctor: Optional[Doctor],
    candidate_dates: Sequence[DateLike],
    today: Optional[date] = None
) -> List[DateLike]:
    """
    Keep only dates falling on a weekday the doctor works.

    While the doctor (or a specialist's schedules) is still loading, every
    date is returned so the calendar never flashes empty. A specialist with
    no working weekday gets no dates. A generalist with no enabled weekday
    keeps every date, since the default daytime window applies.
    """
    if not availability_loaded(doctor):
        return list(candidate_dates)

    weekdays = resolve_available_weekdays(doctor, today)
    if not weekdays:
        if doctor.is_specialist:
            logger.info("specialist_has_no_working_days", doctor_id=doctor.id)
            return []
        return list(candidate_dates)

    filtered = [d for d in candidate_dates if _weekday_of(d) in weekdays]
    logger.debug(
        "dates_filtered",
        doctor_id=doctor.id,
        weekdays=sorted(weekdays),
        kept=len(filtered),
        offered=len(candidate_dates)
    )
    return filtered
