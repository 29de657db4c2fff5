"""Booking session: the state behind one date/time selection screen.

Tracks the selected doctor, date and slot, and turns every availability
error into a user-facing message. Each slot load is stamped with a
generation number; a load that finishes after the user has moved on
(another date, another refresh, or leaving the screen) is discarded.
"""
import asyncio
from datetime import date
from enum import Enum
from typing import List, Optional, Union

from clinic_slots.date_window import availability_loaded, build_date_horizon, filter_dates
from clinic_slots.engine import AvailabilityResult, SlotAvailabilityEngine
from clinic_slots.errors import AvailabilityError, FetchFailure, SlotAlreadyBooked
from clinic_slots.logging_config import get_logger
from clinic_slots.models import Appointment, CalendarDate, Doctor, Slot

logger = get_logger(__name__)


class SessionStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class BookingSession:
    """Selection state for booking one doctor."""

    def __init__(
        self,
        engine: SlotAvailabilityEngine,
        doctor_id: str,
        today: Optional[date] = None
    ):
        self.engine = engine
        self.doctor_id = doctor_id
        self.today = today or date.today()
        self.horizon: List[CalendarDate] = build_date_horizon(self.today)

        self.doctor: Optional[Doctor] = None
        self.selected_date: Optional[date] = None
        self.selected_slot: Optional[Slot] = None
        self.result: Optional[AvailabilityResult] = None
        self.error: Optional[AvailabilityError] = None
        self.status = SessionStatus.IDLE

        self._generation = 0

    @property
    def error_message(self) -> Optional[str]:
        return self.error.user_message if self.error else None

    @property
    def slots(self) -> List[Slot]:
        return self.result.slots if self.result else []

    @property
    def available_dates(self) -> List[CalendarDate]:
        """The horizon, narrowed to working weekdays once the doctor is loaded."""
        return filter_dates(self.doctor, self.horizon, self.today)

    @property
    def dates_loaded(self) -> bool:
        return availability_loaded(self.doctor)

    async def open(self) -> bool:
        """Load the doctor (and a specialist's schedules). False on error."""
        self.status = SessionStatus.LOADING
        try:
            doctor = await self.engine.load_doctor(self.doctor_id)
            self.doctor = await self.engine.with_schedules(doctor)
        except AvailabilityError as e:
            return self._fail(e)

        self.error = None
        self.status = SessionStatus.READY
        return True

    async def select_date(self, day: date) -> Optional[AvailabilityResult]:
        """Select a date and load its slots; clears any chosen time."""
        self.selected_date = day
        self.selected_slot = None
        self.result = None
        return await self._load_slots()

    async def refresh(self) -> Optional[AvailabilityResult]:
        """Re-read bookings for the current selection (screen regained focus)."""
        if self.doctor is None or self.selected_date is None:
            return None
        return await self._load_slots()

    async def retry(self) -> Optional[AvailabilityResult]:
        """Retry action behind every error message."""
        if self.doctor is None:
            if not await self.open():
                return None
        return await self.refresh()

    def close(self) -> None:
        """Leaving the screen: any load still in flight is ignored on arrival."""
        self._generation += 1

    def select_time(self, time: Union[int, str]) -> Slot:
        """
        Choose a slot for the selected date.

        Raises:
            SlotAlreadyBooked: The slot is taken
            ValueError: No date selected, or the slot is not offered that day
        """
        if self.result is None or self.selected_date is None:
            raise ValueError("Select a date before choosing a time")

        slot = self.result.find(time)
        if slot is None:
            raise ValueError(f"{time} is not offered on {self.selected_date.isoformat()}")
        if slot.is_booked:
            logger.warning(
                "booked_slot_selected",
                doctor_id=self.doctor_id,
                date=self.selected_date.isoformat(),
                time=slot.time
            )
            raise SlotAlreadyBooked(slot.time, self.selected_date.isoformat())

        self.selected_slot = slot
        return slot

    async def book(
        self,
        patient_id: str,
        appointment_type: str = "general_consultation",
        clinic_id: Optional[str] = None
    ) -> str:
        """
        Create an appointment for the selected slot.

        Bookings are re-read first so a slot taken while this screen was
        open is caught here. The write itself is a single call to the
        database.

        Args:
            patient_id: Patient the appointment is for
            appointment_type: Stored as the appointment's ``type``
            clinic_id: Overrides the clinic resolved from the slot's location

        Raises:
            SlotAlreadyBooked: The slot was taken in the meantime
            FetchFailure: Bookings could not be read or the write failed
            ValueError: No slot selected
        """
        if self.selected_slot is None or self.selected_date is None:
            raise ValueError("Select a time before booking")

        day = self.selected_date
        minutes = self.selected_slot.minutes
        result = await self._load_slots()
        if result is None:
            raise ValueError("Selection changed while booking")
        if result.error is not None:
            raise result.error

        try:
            slot = self.select_time(minutes)
        except SlotAlreadyBooked as e:
            self._fail(e)
            raise
        location = await self.engine.locate_slot(self.doctor, day, minutes)

        appointment = Appointment(
            doctor_id=self.doctor.id,
            patient_id=patient_id,
            clinic_id=clinic_id or (location.clinic_id if location else None),
            appointment_date=day,
            appointment_time=slot.time,
            status="pending",
            type=appointment_type
        )
        try:
            appointment_id = await asyncio.to_thread(self.engine.data_source.create_appointment, appointment)
        except (SlotAlreadyBooked, FetchFailure) as e:
            self._fail(e)
            raise

        logger.info(
            "appointment_booked",
            appointment_id=appointment_id,
            doctor_id=self.doctor.id,
            date=day.isoformat(),
            time=slot.time
        )
        return appointment_id

    async def _load_slots(self) -> Optional[AvailabilityResult]:
        self._generation += 1
        generation = self._generation
        doctor, day = self.doctor, self.selected_date
        if doctor is None or day is None:
            return None

        self.status = SessionStatus.LOADING
        result = await self.engine.compute_availability(doctor, day)

        if generation != self._generation:
            logger.info(
                "discarding_stale_availability",
                doctor_id=doctor.id,
                date=day.isoformat(),
                trace_id=result.trace_id
            )
            return None

        self.result = result
        if result.error is not None:
            self._fail(result.error)
            return result

        self.error = None
        self.status = SessionStatus.READY
        if self.selected_slot is not None:
            current = result.find(self.selected_slot.minutes)
            self.selected_slot = current if current and not current.is_booked else None
        return result

    def _fail(self, error: AvailabilityError) -> bool:
        self.error = error
        self.status = SessionStatus.ERROR
        logger.warning(
            "booking_session_error",
            doctor_id=self.doctor_id,
            error_type=type(error).__name__,
            error=str(error)
        )
        return False
