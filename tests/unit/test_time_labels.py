"""Tests for time label parsing and formatting."""
import pytest

from clinic_slots.errors import InvalidTimeFormat
from clinic_slots.time_labels import expand_range, format_label, parse_24h, parse_label


class TestParse24h:
    """24-hour "HH:MM" strings stored in weekly schedules."""

    def test_parses_morning_and_afternoon(self):
        assert parse_24h("09:00") == 540
        assert parse_24h("9:00") == 540
        assert parse_24h("13:40") == 820
        assert parse_24h("00:00") == 0

    @pytest.mark.parametrize("value", ["", "9", "24:00", "12:60", "noon", "9:00 AM", None])
    def test_rejects_malformed_values(self, value):
        """Should raise InvalidTimeFormat for anything but HH:MM."""
        with pytest.raises(InvalidTimeFormat):
            parse_24h(value)

    def test_invalid_time_is_a_value_error(self):
        """Callers catching ValueError still catch bad times."""
        with pytest.raises(ValueError):
            parse_24h("25:00")


class TestParseLabel:
    """12-hour display labels used as booking keys."""

    def test_padded_and_unpadded_labels_are_the_same_slot(self):
        assert parse_label("09:00 AM") == parse_label("9:00 AM") == 540

    def test_noon_and_midnight(self):
        assert parse_label("12:00 PM") == 720
        assert parse_label("12:00 AM") == 0
        assert parse_label("12:40 PM") == 760

    def test_pm_adds_twelve_hours(self):
        assert parse_label("1:40 PM") == 820
        assert parse_label("5:00 pm") == 1020

    def test_accepts_24_hour_fallback(self):
        assert parse_label("14:20") == 860

    @pytest.mark.parametrize("value", ["13:00 PM", "0:20 AM", "9:75 AM", "9 AM", ""])
    def test_rejects_bad_labels(self, value):
        with pytest.raises(InvalidTimeFormat):
            parse_label(value)


class TestFormatLabel:
    """Canonical display labels."""

    @pytest.mark.parametrize("minutes,label", [
        (0, "12:00 AM"),
        (540, "9:00 AM"),
        (560, "9:20 AM"),
        (720, "12:00 PM"),
        (820, "1:40 PM"),
        (1020, "5:00 PM"),
    ])
    def test_formats_without_leading_zero(self, minutes, label):
        assert format_label(minutes) == label

    def test_label_parses_back_to_same_minutes(self):
        for minutes in range(0, 24 * 60, 20):
            assert parse_label(format_label(minutes)) == minutes


class TestExpandRange:
    """Slot starts inside a window."""

    def test_end_is_exclusive(self):
        assert expand_range(540, 600, 20) == [540, 560, 580]

    def test_forty_minute_window_gives_two_slots(self):
        assert [format_label(m) for m in expand_range(parse_24h("09:00"), parse_24h("09:40"), 20)] == [
            "9:00 AM", "9:20 AM"
        ]

    def test_empty_when_window_shorter_than_step(self):
        assert expand_range(540, 540, 20) == []

    def test_rejects_non_positive_step(self):
        with pytest.raises(ValueError):
            expand_range(540, 600, 0)
