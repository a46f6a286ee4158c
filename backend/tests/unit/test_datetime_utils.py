"""
Unit tests for datetime utilities.

Tests clinic-local and UTC conversion and the string parsers used at the API boundary.
"""

import pytest
from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

from utils.datetime_utils import (
    day_bounds,
    format_time,
    get_timezone,
    parse_date_string,
    parse_iso_datetime,
    parse_time_string,
    slot_period,
    to_clinic_local,
    to_utc,
    utc_now,
)

SAO_PAULO = ZoneInfo("America/Sao_Paulo")


class TestClinicLocalConversion:
    """Test conversion of datetimes into clinic-local time."""

    def test_utc_now_is_timezone_aware(self):
        now = utc_now()
        assert now.tzinfo is not None
        assert now.utcoffset().total_seconds() == 0

    def test_naive_datetime_is_unchanged(self):
        naive = datetime(2025, 1, 16, 10, 0)
        assert to_clinic_local(naive, SAO_PAULO) == naive

    def test_aware_datetime_is_converted(self):
        """UTC 13:00 is 10:00 in Sao Paulo (UTC-3)."""
        aware = datetime(2025, 1, 16, 13, 0, tzinfo=timezone.utc)
        result = to_clinic_local(aware, SAO_PAULO)
        assert result == datetime(2025, 1, 16, 10, 0)
        assert result.tzinfo is None

    def test_conversion_can_change_the_date(self):
        aware = datetime(2025, 1, 17, 1, 0, tzinfo=timezone.utc)
        assert to_clinic_local(aware, SAO_PAULO) == datetime(2025, 1, 16, 22, 0)

    def test_naive_datetime_to_utc(self):
        result = to_utc(datetime(2025, 1, 16, 10, 0), SAO_PAULO)
        assert result == datetime(2025, 1, 16, 13, 0, tzinfo=timezone.utc)
        assert result.tzinfo == timezone.utc

    def test_aware_datetime_to_utc_ignores_clinic_zone(self):
        manaus = datetime(2025, 1, 16, 9, 0, tzinfo=ZoneInfo("America/Manaus"))
        assert to_utc(manaus, SAO_PAULO) == datetime(2025, 1, 16, 13, 0, tzinfo=timezone.utc)

    def test_utc_round_trip_across_midnight(self):
        local = datetime(2025, 1, 16, 22, 0)
        assert to_utc(local, SAO_PAULO).date() == date(2025, 1, 17)
        assert to_clinic_local(to_utc(local, SAO_PAULO), SAO_PAULO) == local

    def test_get_timezone(self):
        assert get_timezone("America/Sao_Paulo") == SAO_PAULO
        with pytest.raises(ValueError):
            get_timezone("Not/AZone")
        with pytest.raises(ValueError):
            get_timezone("")

    def test_day_bounds(self):
        start, end = day_bounds(date(2025, 1, 16))
        assert start == datetime(2025, 1, 16, 0, 0)
        assert end == datetime(2025, 1, 17, 0, 0)


class TestParsers:
    """Test string parsing helpers."""

    def test_parse_time_string(self):
        assert parse_time_string("08:00") == time(8, 0)
        assert parse_time_string(" 13:30 ") == time(13, 30)

    @pytest.mark.parametrize("value", ["", "8", "25:00", "12:60", "ab:cd", "12:00:00"])
    def test_parse_time_string_invalid(self, value):
        with pytest.raises(ValueError):
            parse_time_string(value)

    def test_format_time(self):
        assert format_time(time(8, 5)) == "08:05"

    def test_parse_date_string(self):
        assert parse_date_string("2025-01-16") == date(2025, 1, 16)
        assert parse_date_string("2025/1/6") == date(2025, 1, 6)

    @pytest.mark.parametrize("value", ["", "2025-01", "2025-02-30", "tomorrow"])
    def test_parse_date_string_invalid(self, value):
        with pytest.raises(ValueError):
            parse_date_string(value)

    def test_parse_iso_datetime_with_z_suffix(self):
        result = parse_iso_datetime("2025-01-16T13:00:00Z")
        assert result == datetime(2025, 1, 16, 13, 0, tzinfo=timezone.utc)
        assert parse_iso_datetime("") is None

    def test_slot_period(self):
        assert slot_period(datetime(2025, 1, 16, 11, 59)) == "morning"
        assert slot_period(datetime(2025, 1, 16, 12, 0)) == "afternoon"
        assert slot_period(datetime(2025, 1, 16, 17, 0)) == "afternoon"
        assert slot_period(datetime(2025, 1, 16, 18, 0)) == "evening"
