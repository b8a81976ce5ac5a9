"""
Unit tests for datetime utilities.
"""

import pytest
from datetime import date, datetime, time, timezone

from clinic_scheduling.utils.datetime_utils import (
    utc_now, parse_date_string, parse_time_string, coerce_date, coerce_time,
    time_to_seconds, seconds_to_time, format_time,
)


class TestParseDateString:
    """Test date string parsing."""

    def test_iso_format(self):
        assert parse_date_string("2025-06-01") == date(2025, 6, 1)

    def test_slash_format(self):
        assert parse_date_string("2025/06/01") == date(2025, 6, 1)

    def test_single_digit_month_and_day(self):
        assert parse_date_string("2025-6-1") == date(2025, 6, 1)
        assert parse_date_string("2025/6/1") == date(2025, 6, 1)

    def test_surrounding_whitespace(self):
        assert parse_date_string("  2025-06-01 ") == date(2025, 6, 1)

    @pytest.mark.parametrize("value", ["", "   ", "20250601", "2025-06", "2025-13-01", "2025-02-30", "June 1"])
    def test_invalid_dates(self, value):
        with pytest.raises(ValueError):
            parse_date_string(value)


class TestParseTimeString:
    """Test time-of-day parsing."""

    def test_hours_and_minutes(self):
        assert parse_time_string("09:30") == time(9, 30)

    def test_with_seconds(self):
        assert parse_time_string("09:30:15") == time(9, 30, 15)

    @pytest.mark.parametrize("value", ["", "9", "25:00", "09:60", "09:30:00.5", "nine"])
    def test_invalid_times(self, value):
        with pytest.raises(ValueError):
            parse_time_string(value)


class TestCoercion:
    """Test date/time coercion used by request parsing."""

    def test_coerce_date_passthrough(self):
        assert coerce_date(date(2025, 6, 2)) == date(2025, 6, 2)

    def test_coerce_date_from_datetime(self):
        assert coerce_date(datetime(2025, 6, 2, 15, 45)) == date(2025, 6, 2)

    def test_coerce_date_from_string(self):
        assert coerce_date("2025-06-02") == date(2025, 6, 2)

    def test_coerce_date_rejects_other_types(self):
        with pytest.raises(ValueError):
            coerce_date(20250602)

    def test_coerce_time_drops_microseconds_and_tzinfo(self):
        value = time(9, 0, 0, 123456, tzinfo=timezone.utc)
        assert coerce_time(value) == time(9, 0)
        assert coerce_time(value).tzinfo is None

    def test_coerce_time_from_string(self):
        assert coerce_time("14:30") == time(14, 30)

    def test_coerce_time_rejects_other_types(self):
        with pytest.raises(ValueError):
            coerce_time(930)


class TestSecondsConversion:
    """Test seconds-since-midnight arithmetic."""

    def test_time_to_seconds(self):
        assert time_to_seconds(time(0, 0)) == 0
        assert time_to_seconds(time(9, 30, 15)) == 9 * 3600 + 30 * 60 + 15

    def test_seconds_to_time(self):
        assert seconds_to_time(0) == time(0, 0)
        assert seconds_to_time(34215) == time(9, 30, 15)
        assert seconds_to_time(86399) == time(23, 59, 59)

    def test_seconds_to_time_out_of_range(self):
        with pytest.raises(ValueError):
            seconds_to_time(86400)
        with pytest.raises(ValueError):
            seconds_to_time(-1)


class TestFormatting:
    """Test time formatting."""

    def test_format_without_seconds(self):
        assert format_time(time(9, 0)) == "09:00"

    def test_format_with_seconds(self):
        assert format_time(time(9, 0, 30)) == "09:00:30"


def test_utc_now_is_timezone_aware():
    now = utc_now()
    assert now.tzinfo is not None
    assert now.utcoffset().total_seconds() == 0
