from __future__ import annotations

from datetime import date, timedelta

import pytest

from src.hr_operations.hr_operations.common.datetime_utils import (
    date_to_excel_serial,
    excel_serial_to_date,
    inclusive_days,
    iso_to_excel_serial,
    normalize_date_value,
)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("45292", "2024-01-01"),
        ("45292.75", "2024-01-01"),
        ("61", "1900-03-01"),
        ("2024-05-01", "2024-05-01"),
        ("2024-05-01 00:00:00", "2024-05-01"),
        ("2024-05-01T08:00:00", "2024-05-01"),
        (" 2100-12-31 ", "2100-12-31"),
    ],
)
def test_valid_values_normalize_to_iso(raw, expected):
    assert normalize_date_value(raw) == expected


@pytest.mark.parametrize("raw", ["", "0", "-5", "60001", "2024-02-30", "1899-12-31", "2101-01-01", "next tuesday", "nan"])
def test_invalid_values_are_dropped(raw):
    assert normalize_date_value(raw) is None


def test_serial_bounds():
    assert excel_serial_to_date(1) == date(1899, 12, 31)
    with pytest.raises(ValueError):
        excel_serial_to_date(0)
    with pytest.raises(ValueError):
        excel_serial_to_date(60001)


def test_iso_to_serial_matches_known_values():
    assert iso_to_excel_serial("2024-01-01") == 45292
    assert iso_to_excel_serial("1900-01-01") == 2


def test_round_trip_across_serial_range():
    day = date(1900, 1, 1)
    last = excel_serial_to_date(60000)
    while day <= last:
        assert excel_serial_to_date(date_to_excel_serial(day)) == day
        assert normalize_date_value(str(date_to_excel_serial(day))) == day.isoformat()
        day += timedelta(days=997)


def test_inclusive_days_counts_both_ends():
    assert inclusive_days(date(2026, 3, 16), date(2026, 3, 16)) == 1
    assert inclusive_days(date(2026, 3, 16), date(2026, 3, 18)) == 3
