"""Tests for turning schedules into candidate slots."""
from datetime import date

from clinic_slots.errors import NoScheduleForDate
from clinic_slots.models import Doctor, Schedule, TimeRange
from clinic_slots.schedule_adapter import (
    default_window_slots,
    expand_time_ranges,
    find_schedule_for_slot,
    primary_clinic_id,
    resolve_available_weekdays,
    resolve_day_slots,
    template_slots
)
from tests.utils.dates import FRIDAY, MONDAY, SATURDAY, THURSDAY, TODAY, TUESDAY, WEDNESDAY


def _labels(slots):
    return [s.time for s in slots]


def _schedule(schedule_id, days, template, valid_from="2025-01-01", clinic="clinic-001", **extra):
    return Schedule.model_validate({
        "id": schedule_id,
        "specialistId": "doc-spec",
        "validFrom": valid_from,
        "recurrence": {"dayOfWeek": days},
        "slotTemplate": {label: {"durationMinutes": 20} for label in template},
        "practiceLocation": {"clinicId": clinic, "roomOrUnit": f"Room {schedule_id}"},
        **extra
    })


class TestDefaultWindow:
    """Fallback window for generalists without an enabled day."""

    def test_runs_from_nine_through_five_inclusive(self):
        slots = default_window_slots()
        labels = _labels(slots)

        assert len(slots) == 25
        assert labels[0] == "9:00 AM"
        assert labels[1] == "9:20 AM"
        assert labels[-2] == "4:40 PM"
        assert labels[-1] == "5:00 PM"

    def test_steps_are_twenty_minutes(self):
        minutes = [s.minutes for s in default_window_slots()]
        assert all(b - a == 20 for a, b in zip(minutes, minutes[1:]))


class TestGeneralistDaySlots:
    """Weekly schedule expansion."""

    def test_expands_each_window_in_stored_order(self, generalist):
        result = resolve_day_slots(generalist, MONDAY)

        assert result.error is None
        assert not result.used_default_window
        assert _labels(result.slots) == [
            "9:00 AM", "9:20 AM", "9:40 AM",
            "2:00 PM", "2:20 PM", "2:40 PM",
        ]

    def test_missing_day_falls_back_to_default_window(self, generalist):
        result = resolve_day_slots(generalist, TUESDAY)

        assert result.used_default_window
        assert len(result.slots) == 25

    def test_enabled_day_without_windows_falls_back(self, generalist):
        assert resolve_day_slots(generalist, WEDNESDAY).used_default_window

    def test_disabled_day_falls_back_even_with_windows(self, generalist):
        assert resolve_day_slots(generalist, FRIDAY).used_default_window

    def test_generalist_without_availability_gets_default_window(self):
        result = resolve_day_slots(Doctor(id="doc-new"), MONDAY)
        assert len(result.slots) == 25

    def test_malformed_window_is_skipped(self):
        ranges = [
            TimeRange(start_time="9am", end_time="10:00"),
            TimeRange(start_time="10:00", end_time="10:40"),
        ]
        assert _labels(expand_time_ranges(ranges)) == ["10:00 AM", "10:20 AM"]


class TestSpecialistDaySlots:
    """Schedule record selection and template order."""

    def test_uses_active_schedule_template(self, specialist, source):
        doctor = specialist.model_copy(update={"schedules": list(source.get_specialist_schedules("doc-spec").values())})

        result = resolve_day_slots(doctor, MONDAY)

        assert result.error is None
        assert result.schedule.id == "sch-mw"
        assert _labels(result.slots) == ["10:00 AM", "10:20 AM", "10:40 AM"]

    def test_no_schedule_for_weekday(self, specialist, source):
        doctor = specialist.model_copy(update={"schedules": list(source.get_specialist_schedules("doc-spec").values())})

        result = resolve_day_slots(doctor, TUESDAY)

        assert result.slots == []
        assert isinstance(result.error, NoScheduleForDate)
        assert result.error.user_message == "No available schedule for this date. Please select a different date."

    def test_specialist_without_schedules_has_no_slots(self, specialist):
        result = resolve_day_slots(specialist.model_copy(update={"schedules": []}), MONDAY)
        assert isinstance(result.error, NoScheduleForDate)

    def test_template_order_is_kept(self):
        schedule = _schedule("s1", [1], ["2:00 PM", "9:00 AM", "11:00 AM"])
        assert _labels(template_slots(schedule)) == ["2:00 PM", "9:00 AM", "11:00 AM"]

    def test_padded_duplicate_keys_collapse(self):
        schedule = _schedule("s1", [1], ["09:00 AM", "9:00 AM", "9:20 AM"])
        assert _labels(template_slots(schedule)) == ["9:00 AM", "9:20 AM"]

    def test_unparseable_template_key_is_skipped(self):
        schedule = _schedule("s1", [1], ["whenever", "9:20 AM"])
        assert _labels(template_slots(schedule)) == ["9:20 AM"]


class TestAvailableWeekdays:
    """Weekdays used to filter the calendar."""

    def test_generalist_days_with_valid_windows(self, generalist):
        assert resolve_available_weekdays(generalist, TODAY) == {1, 4}

    def test_specialist_union_over_started_schedules(self):
        doctor = Doctor(id="doc-spec", is_specialist=True, schedules=[
            _schedule("a", [1, 3], ["10:00 AM"]),
            _schedule("b", [5], ["10:00 AM"]),
            _schedule("future", [6], ["10:00 AM"], valid_from="2025-02-01"),
            _schedule("off", [2], ["10:00 AM"], isActive=False),
        ])
        assert resolve_available_weekdays(doctor, TODAY) == {1, 3, 5}

    def test_specialist_schedule_starting_today_counts(self):
        doctor = Doctor(id="doc-spec", is_specialist=True, schedules=[
            _schedule("a", [2], ["10:00 AM"], valid_from=TODAY.isoformat()),
        ])
        assert resolve_available_weekdays(doctor, TODAY) == {2}


class TestSlotLocation:
    """Room and clinic lookup for a booked slot."""

    def test_finds_schedule_that_offers_the_slot(self):
        morning = _schedule("am", [1], ["9:00 AM", "9:20 AM"], clinic="clinic-001")
        afternoon = _schedule("pm", [1], ["2:00 PM"], clinic="clinic-002")

        found = find_schedule_for_slot([morning, afternoon], MONDAY, 840)

        assert found.id == "pm"
        assert found.practice_location.clinic_id == "clinic-002"

    def test_no_schedule_when_weekday_does_not_match(self):
        morning = _schedule("am", [1], ["9:00 AM"])
        assert find_schedule_for_slot([morning], THURSDAY, 540) is None

    def test_primary_clinic_is_latest_started_schedule(self):
        schedules = [
            _schedule("old", [1], ["9:00 AM"], valid_from="2024-06-01", clinic="clinic-old"),
            _schedule("new", [3], ["9:00 AM"], valid_from="2024-12-01", clinic="clinic-new"),
            _schedule("future", [5], ["9:00 AM"], valid_from="2025-03-01", clinic="clinic-future"),
        ]
        assert primary_clinic_id(schedules, TODAY) == "clinic-new"

    def test_primary_clinic_skips_schedules_without_location(self):
        schedules = [
            _schedule("old", [1], ["9:00 AM"], valid_from="2024-06-01", clinic="clinic-old"),
            _schedule("new", [3], ["9:00 AM"], valid_from="2024-12-01", practiceLocation=None),
        ]
        assert primary_clinic_id(schedules, TODAY) == "clinic-old"

    def test_primary_clinic_none_without_started_schedules(self):
        assert primary_clinic_id([], SATURDAY) is None
        assert primary_clinic_id(
            [_schedule("future", [5], ["9:00 AM"], valid_from="2025-03-01")],
            date(2025, 1, 6)
        ) is None
