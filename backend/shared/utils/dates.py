"""Calendar-date helpers: strict parsing, window expansion and zone-aware 'today'."""
from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from shared.errors import InvalidDateFormat, InvalidTimezone

DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_date(value: object) -> date:
    """Parse a strict ``YYYY-MM-DD`` string into a real calendar date."""
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not DATE_RE.match(value):
        raise InvalidDateFormat(value)
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise InvalidDateFormat(value) from exc


def resolve_timezone(name: Optional[str]) -> tzinfo:
    if not name:
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidTimezone(name) from exc


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def today_in(tz_name: Optional[str], now: Optional[datetime] = None) -> date:
    """Calendar date of ``now`` in the given zone (UTC when unset)."""
    now = now or utcnow()
    return now.astimezone(resolve_timezone(tz_name)).date()


def window_dates(target: date) -> list[date]:
    """The three date windows fetched for ``target``, in canonical order."""
    return [target - timedelta(days=1), target, target + timedelta(days=1)]
