"""Slot availability engine.

One entry point for every booking flow (patient booking, specialist
referral, follow-up), parameterized by doctor kind:

    engine = SlotAvailabilityEngine(RealtimeDatabaseClient())
    doctor = await engine.load_doctor("doc-123")
    dates = await engine.filter_dates(doctor, build_date_horizon())
    result = await engine.compute_availability(doctor, dates[0].day)

Schedule data and booking data are fetched concurrently and joined before
any slot is annotated. Errors come back on the result, not as exceptions,
except for DoctorNotFound from ``load_doctor``.
"""
import asyncio
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Sequence, Union

from clinic_slots import config
from clinic_slots.cache import DocumentCache
from clinic_slots.conflicts import BookedSlots, BookingConflictResolver
from clinic_slots.config import FetchErrorPolicy
from clinic_slots.datasource import DataSource
from clinic_slots.date_window import DateLike
from clinic_slots.date_window import filter_dates as filter_date_window
from clinic_slots.errors import AvailabilityError, DoctorNotFound, FetchFailure
from clinic_slots.logging_config import generate_trace_id, get_logger
from clinic_slots.models import Doctor, Schedule, Slot
from clinic_slots.schedule_adapter import find_schedule_for_slot, primary_clinic_id, resolve_day_slots
from clinic_slots.time_labels import format_label, parse_label

logger = get_logger(__name__)


@dataclass
class AvailabilityResult:
    """Annotated slots for one doctor on one date."""
    doctor_id: str
    day: date
    slots: List[Slot] = field(default_factory=list)
    error: Optional[AvailabilityError] = None
    trace_id: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def open_slots(self) -> List[Slot]:
        return [s for s in self.slots if not s.is_booked]

    def find(self, time: Union[int, str]) -> Optional[Slot]:
        """Slot by minutes since midnight or by any accepted label form."""
        minutes = time if isinstance(time, int) else parse_label(time)
        return next((s for s in self.slots if s.minutes == minutes), None)


@dataclass
class SlotLocation:
    """Where a booked slot takes place."""
    clinic_id: Optional[str]
    clinic_name: Optional[str] = None
    room_or_unit: Optional[str] = None
    schedule_id: Optional[str] = None


class SlotAvailabilityEngine:
    """Combines candidate slots with existing bookings."""

    def __init__(
        self,
        data_source: DataSource,
        on_fetch_error: Optional[Union[FetchErrorPolicy, str]] = None,
        cache: Optional[DocumentCache] = None
    ):
        """
        Args:
            data_source: Realtime database (or in-memory stand-in)
            on_fetch_error: Booking fetch failure policy, see BookingConflictResolver
            cache: Doctor/schedule document cache; bookings are never cached
        """
        self.data_source = data_source
        self.resolver = BookingConflictResolver(data_source, on_fetch_error)
        self.cache = cache or DocumentCache(ttl=config.SCHEDULE_CACHE_TTL_SECONDS)

    # =========================================================================
    # Loading
    # =========================================================================

    async def load_doctor(self, doctor_id: str) -> Doctor:
        """
        Fetch a doctor profile.

        Raises:
            DoctorNotFound: The id does not resolve
            FetchFailure: The database could not be read
        """
        doctor = await asyncio.to_thread(
            self.cache.get_or_load,
            ("doctor", doctor_id),
            lambda: self.data_source.get_doctor_by_id(doctor_id)
        )
        if doctor is None:
            logger.warning("doctor_not_found", doctor_id=doctor_id)
            raise DoctorNotFound(doctor_id)
        return doctor

    async def load_schedules(self, specialist_id: str) -> List[Schedule]:
        """
        Fetch a specialist's schedule records.

        Raises:
            FetchFailure: The database could not be read
        """
        schedules = await asyncio.to_thread(
            self.cache.get_or_load,
            ("schedules", specialist_id),
            lambda: list(self.data_source.get_specialist_schedules(specialist_id).values())
        )
        return schedules or []

    async def with_schedules(self, doctor: Doctor) -> Doctor:
        """The doctor with specialist schedules attached (generalists unchanged)."""
        if not doctor.is_specialist or doctor.schedules is not None:
            return doctor
        schedules = await self.load_schedules(doctor.id)
        return doctor.model_copy(update={"schedules": schedules})

    def invalidate(self, doctor_id: Optional[str] = None) -> None:
        """Forget cached documents for one doctor, or all of them."""
        if doctor_id is None:
            self.cache.clear()
            return
        self.cache.clear(("doctor", doctor_id))
        self.cache.clear(("schedules", doctor_id))

    # =========================================================================
    # Availability
    # =========================================================================

    async def compute_availability(self, doctor: Doctor, day: date) -> AvailabilityResult:
        """
        Candidate slots for ``day`` in schedule order, each flagged ``is_booked``.

        Never raises for data problems: schedule fetch failures, booking
        fetch failures under fail-closed and NoScheduleForDate all come
        back as ``result.error`` with no slots.
        """
        trace_id = generate_trace_id()
        log = logger.bind(trace_id=trace_id, doctor_id=doctor.id, date=day.isoformat())
        log.info("availability_requested", is_specialist=doctor.is_specialist)

        schedule_leg = self.with_schedules(doctor)
        booking_leg = asyncio.to_thread(
            self.resolver.get_booked_slots, doctor.id, day, doctor.is_specialist
        )
        loaded, booked = await asyncio.gather(schedule_leg, booking_leg, return_exceptions=True)

        for outcome, source in ((loaded, "schedule"), (booked, "booking")):
            if isinstance(outcome, FetchFailure):
                log.error("availability_fetch_failed", source=source, error=str(outcome))
                return AvailabilityResult(doctor.id, day, error=outcome, trace_id=trace_id)
            if isinstance(outcome, BaseException):
                raise outcome

        day_slots = resolve_day_slots(loaded, day)
        if day_slots.error is not None:
            return AvailabilityResult(doctor.id, day, error=day_slots.error, trace_id=trace_id)

        slots = annotate(day_slots.slots, booked)
        log.info(
            "availability_computed",
            total=len(slots),
            booked=sum(1 for s in slots if s.is_booked),
            default_window=day_slots.used_default_window
        )
        return AvailabilityResult(doctor.id, day, slots=slots, trace_id=trace_id)

    async def filter_dates(
        self,
        doctor: Doctor,
        dates: Sequence[DateLike],
        today: Optional[date] = None
    ) -> List[DateLike]:
        """
        Narrow the horizon to weekdays the doctor works.

        Raises:
            FetchFailure: Specialist schedules could not be read
        """
        loaded = await self.with_schedules(doctor)
        return filter_date_window(loaded, dates, today)

    async def locate_slot(self, doctor: Doctor, day: date, time: Union[int, str]) -> Optional[SlotLocation]:
        """
        Clinic and room for a slot, for referral records and display.

        Specialists: the practice location of the schedule that offers the
        slot (None when no schedule does). A schedule without a location
        falls back to the clinic of the latest started
        schedule that has one. Generalists: the first clinic affiliation,
        with no room.
        """
        minutes = time if isinstance(time, int) else parse_label(time)

        if doctor.is_specialist:
            loaded = await self.with_schedules(doctor)
            schedule = find_schedule_for_slot(loaded.schedules, day, minutes)
            if schedule is None:
                logger.info(
                    "no_schedule_for_slot",
                    doctor_id=doctor.id,
                    date=day.isoformat(),
                    time=format_label(minutes)
                )
                return None
            if schedule.practice_location is None:
                location = SlotLocation(
                    clinic_id=primary_clinic_id(loaded.schedules, day),
                    schedule_id=schedule.id
                )
            else:
                location = SlotLocation(
                    clinic_id=schedule.practice_location.clinic_id,
                    room_or_unit=schedule.practice_location.room_or_unit,
                    schedule_id=schedule.id
                )
        else:
            clinic_id = doctor.clinic_affiliations[0] if doctor.clinic_affiliations else None
            location = SlotLocation(clinic_id=clinic_id)

        if location.clinic_id:
            clinic = await asyncio.to_thread(self.data_source.get_clinic_by_id, location.clinic_id)
            location.clinic_name = clinic.name if clinic else None
        return location


def annotate(candidates, booked: BookedSlots) -> List[Slot]:
    """Flag each candidate booked or open, keeping candidate order."""
    return [
        Slot(
            minutes=c.minutes,
            duration_minutes=c.duration_minutes,
            is_booked=c.minutes in booked.minutes
        )
        for c in candidates
    ]
