"""Tests for calendar month arithmetic."""
from datetime import date, datetime

import pytest

from billing_api.utils.calendar import (
    MonthKey,
    current_month,
    months_between,
    to_storage_date,
    from_storage_date,
    year_bounds,
)


class TestMonthKey:
    def test_from_date_reads_year_and_month(self):
        assert MonthKey.from_date(date(2025, 10, 31)) == MonthKey(2025, 10)
        assert MonthKey.from_date(datetime(2025, 10, 1, 0, 0)) == MonthKey(2025, 10)

    def test_midnight_first_of_month_stays_in_month(self):
        """A day-1 midnight timestamp must never slide into the previous month."""
        key = MonthKey.from_date(datetime(2025, 10, 1))
        assert str(key) == "2025-10-01"

    def test_parse(self):
        assert MonthKey.parse("2025-02") == MonthKey(2025, 2)
        assert MonthKey.parse("2025-02-17") == MonthKey(2025, 2)

    def test_parse_invalid(self):
        with pytest.raises(ValueError):
            MonthKey.parse("February")
        with pytest.raises(ValueError):
            MonthKey.parse("2025-13")

    def test_invalid_month_rejected(self):
        with pytest.raises(ValueError):
            MonthKey(2025, 0)

    def test_shift_across_year_boundary(self):
        assert MonthKey(2024, 12).next() == MonthKey(2025, 1)
        assert MonthKey(2025, 1).previous() == MonthKey(2024, 12)
        assert MonthKey(2025, 11).shift(14) == MonthKey(2027, 1)
        assert MonthKey(2025, 3).shift(-15) == MonthKey(2023, 12)

    def test_ordering(self):
        assert MonthKey(2024, 12) < MonthKey(2025, 1) < MonthKey(2025, 2)

    def test_storage_forms(self):
        key = MonthKey(2025, 4)
        assert key.first_day() == date(2025, 4, 1)
        assert key.to_datetime() == datetime(2025, 4, 1)


class TestMonthsBetween:
    def test_inclusive_range(self):
        months = list(months_between(MonthKey(2025, 1), MonthKey(2025, 4)))
        assert months == [MonthKey(2025, 1), MonthKey(2025, 2), MonthKey(2025, 3), MonthKey(2025, 4)]

    def test_single_month(self):
        assert list(months_between(MonthKey(2025, 6), MonthKey(2025, 6))) == [MonthKey(2025, 6)]

    def test_end_before_start_is_empty(self):
        months = months_between(MonthKey(2025, 5), MonthKey(2025, 4))
        assert list(months) == []
        assert len(months) == 0

    def test_range_is_reiterable(self):
        months = months_between(MonthKey(2024, 11), MonthKey(2025, 2))
        assert list(months) == list(months)
        assert len(months) == 4
        assert MonthKey(2025, 1) in months
        assert MonthKey(2025, 3) not in months


def test_current_month_uses_given_day():
    assert current_month(date(2025, 4, 30)) == MonthKey(2025, 4)


def test_year_bounds_half_open():
    start, end = year_bounds(2025)
    assert start == datetime(2025, 1, 1)
    assert end == datetime(2026, 1, 1)


def test_storage_date_roundtrip_keeps_calendar_day():
    stored = to_storage_date(date(2025, 2, 15))
    assert stored == datetime(2025, 2, 15)
    assert from_storage_date(stored) == date(2025, 2, 15)
    assert to_storage_date(None) is None
    assert from_storage_date(None) is None
