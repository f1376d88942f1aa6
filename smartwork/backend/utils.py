from __future__ import annotations

import calendar
import os
import re
from collections.abc import Iterator
from datetime import date, datetime

from .errors import MalformedPeriod

_ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")
_MONTH_KEY = re.compile(r"(\d{4})-(\d{2})")


def get_full_day_hours() -> float:
    """Return the configured full-day hours (default 8.0)."""
    try:
        val = float(os.environ.get("TIMESHEET_FULL_DAY_HOURS", "8") or 8)
        return val if val > 0 else 8.0
    except ValueError:
        return 8.0


def describe_hours_delta(total: float, full_day: float | None = None) -> str | None:
    """Return a standardized note for a short or long day.

    - If total == full_day: returns None.
    - If total < full_day: "Xh reported, Yh short of {full_day}h".
    - If total > full_day: "Xh reported, +Yh over {full_day}h".
    """
    full = full_day if full_day is not None else get_full_day_hours()
    delta = round(total - full, 2)
    if abs(delta) < 1e-9:
        return None
    if delta < 0:
        return f"{format_hours(total)}h reported, {format_hours(-delta)}h short of {full:g}h"
    return f"{format_hours(total)}h reported, +{format_hours(delta)}h over {full:g}h"


def format_hours(x: float) -> str:
    s = f"{x:.2f}"
    if s.endswith(".00"):
        return s[:-3]
    if s.endswith("0"):
        return s[:-1]
    return s


def parse_iso_date(value: str | date) -> date:
    """Parse a strict YYYY-MM-DD string; `date` objects pass through."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = (value or "").strip()
    if not _ISO_DATE.fullmatch(s):
        raise MalformedPeriod(f"Invalid date {value!r}; expected YYYY-MM-DD.")
    try:
        return datetime.strptime(s, "%Y-%m-%d").date()
    except ValueError as exc:
        raise MalformedPeriod(f"Invalid date {value!r}: {exc}") from exc


def parse_year_month(year: str | int, month: str | int) -> tuple[int, int]:
    """Coerce the (year, month) pair used by the validator, failing fast."""
    try:
        y = int(str(year).strip())
        m = int(str(month).strip())
    except ValueError as exc:
        raise MalformedPeriod(f"Invalid period {year!r}-{month!r}.") from exc
    if not 1 <= y <= 9999:
        raise MalformedPeriod(f"Year out of range: {year!r}.")
    if not 1 <= m <= 12:
        raise MalformedPeriod(f"Month out of range: {month!r}.")
    return y, m


def parse_month_key(key: str) -> tuple[int, int]:
    """Split a YYYY-MM key into (year, month)."""
    match = _MONTH_KEY.fullmatch((key or "").strip())
    if not match:
        raise MalformedPeriod(f"Invalid month {key!r}; expected YYYY-MM.")
    return parse_year_month(match.group(1), match.group(2))


def month_key(value: str | date) -> str:
    """Return the YYYY-MM key of a date or ISO date string."""
    d = parse_iso_date(value)
    return f"{d.year:04d}-{d.month:02d}"


def iter_month_dates(year: int, month: int) -> Iterator[date]:
    last = calendar.monthrange(year, month)[1]
    for day in range(1, last + 1):
        yield date(year, month, day)


def is_weekend(d: date) -> bool:
    return d.weekday() >= 5
