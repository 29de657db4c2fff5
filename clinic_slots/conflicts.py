"""Which slots are already taken for a doctor on a date.

Bookings come from two places: direct appointments (any doctor) and
referrals (specialists only). Both are reduced to minutes since midnight,
so "09:00 AM" in one source and "9:00 AM" in the other collide as they
should.
"""
from dataclasses import dataclass
from datetime import date
from typing import FrozenSet, Iterable, List, Optional, Union

from clinic_slots import config
from clinic_slots.config import FetchErrorPolicy
from clinic_slots.datasource import DataSource
from clinic_slots.errors import FetchFailure, InvalidTimeFormat
from clinic_slots.logging_config import get_logger
from clinic_slots.time_labels import format_label, parse_label

logger = get_logger(__name__)


@dataclass(frozen=True)
class BookedSlots:
    """Unordered set of occupied slots; supports ``label in booked`` and ``540 in booked``."""
    minutes: FrozenSet[int] = frozenset()

    @classmethod
    def from_labels(cls, labels: Iterable[str]) -> "BookedSlots":
        minutes = set()
        for label in labels:
            try:
                minutes.add(parse_label(label))
            except InvalidTimeFormat:
                logger.warning("unparseable_booking_time", appointment_time=label)
        return cls(frozenset(minutes))

    @property
    def labels(self) -> FrozenSet[str]:
        """Occupied slots as canonical display labels."""
        return frozenset(format_label(m) for m in self.minutes)

    def __contains__(self, item: Union[int, str]) -> bool:
        if isinstance(item, int):
            return item in self.minutes
        try:
            return parse_label(item) in self.minutes
        except InvalidTimeFormat:
            return False

    def __len__(self) -> int:
        return len(self.minutes)


class BookingConflictResolver:
    """Merges appointment and referral bookings for one doctor and date."""

    def __init__(
        self,
        data_source: DataSource,
        on_fetch_error: Optional[Union[FetchErrorPolicy, str]] = None
    ):
        """
        Args:
            data_source: Where bookings are read from
            on_fetch_error: "fail-open" treats a failed fetch as nothing
                booked; "fail-closed" (the configured default) re-raises
        """
        self.data_source = data_source
        self.on_fetch_error = FetchErrorPolicy(on_fetch_error or config.BOOKING_FETCH_ERROR_POLICY)

    def fetch_booked_times(self, doctor_id: str, day: date, is_specialist: bool) -> List[str]:
        """
        Raw time labels of bookings that hold a slot.

        Raises:
            FetchFailure: If a booking source cannot be read
        """
        if not is_specialist:
            return list(self.data_source.get_booked_time_slots(doctor_id, day))

        from_referrals = [
            r.appointment_time
            for r in self.data_source.get_specialist_referrals(doctor_id)
            if r.assigned_specialist_id == doctor_id
            and r.appointment_date == day
            and r.occupies_slot()
        ]
        from_appointments = [
            a.appointment_time
            for a in self.data_source.get_appointments(doctor_id, "specialist")
            if a.doctor_id == doctor_id
            and a.appointment_date == day
            and a.occupies_slot()
        ]
        return from_referrals + from_appointments

    def get_booked_slots(self, doctor_id: str, day: date, is_specialist: bool) -> BookedSlots:
        """
        Occupied slots for ``doctor_id`` on ``day``.

        Raises:
            FetchFailure: Fetch failed and the policy is fail-closed
        """
        try:
            labels = self.fetch_booked_times(doctor_id, day, is_specialist)
        except FetchFailure as e:
            if self.on_fetch_error == FetchErrorPolicy.FAIL_OPEN:
                logger.warning(
                    "booking_fetch_failed_open",
                    doctor_id=doctor_id,
                    date=day.isoformat(),
                    error=str(e)
                )
                return BookedSlots()
            raise

        booked = BookedSlots.from_labels(labels)
        logger.debug(
            "booked_slots_resolved",
            doctor_id=doctor_id,
            date=day.isoformat(),
            is_specialist=is_specialist,
            booked=sorted(booked.labels)
        )
        return booked
