"""Unit tests for strict date parsing and window expansion."""
from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from shared.errors import InvalidDateFormat, InvalidTimezone
from shared.utils.dates import parse_date, resolve_timezone, today_in, window_dates


def test_parse_date_accepts_iso_calendar_date() -> None:
    assert parse_date("2025-06-15") == date(2025, 6, 15)
    assert parse_date(date(2025, 6, 15)) == date(2025, 6, 15)


@pytest.mark.parametrize(
    "value",
    ["", "2025-6-15", "15-06-2025", "2025/06/15", "2025-02-30", "2025-13-01", "today", None, 20250615],
)
def test_parse_date_rejects_malformed(value: object) -> None:
    with pytest.raises(InvalidDateFormat) as exc_info:
        parse_date(value)
    assert exc_info.value.value == value


def test_invalid_date_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        parse_date("2025-02-29")


def test_window_dates_cross_month_and_year() -> None:
    assert window_dates(date(2025, 1, 1)) == [date(2024, 12, 31), date(2025, 1, 1), date(2025, 1, 2)]
    assert window_dates(date(2024, 3, 1)) == [date(2024, 2, 29), date(2024, 3, 1), date(2024, 3, 2)]


def test_today_in_zone() -> None:
    now = datetime(2025, 6, 15, 23, 30, tzinfo=timezone.utc)
    assert today_in("UTC", now) == date(2025, 6, 15)
    assert today_in("Asia/Tokyo", now) == date(2025, 6, 16)
    assert today_in("America/Los_Angeles", now) == date(2025, 6, 15)


def test_resolve_timezone() -> None:
    assert resolve_timezone(None) is timezone.utc
    with pytest.raises(InvalidTimezone):
        resolve_timezone("Mars/Olympus_Mons")
