"""Public holiday calendar.

Rules, one per line:
  - MM-DD | Name          -> fixed every year
  - EASTER+N | Name       -> Easter Sunday plus/minus N days
  - YYYY-MM-DD | Name     -> one-off

A trailing `| since=YYYY` limits a rule to the given year onwards
(Good Friday became a Czech public holiday in 2016).
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, timedelta
from functools import lru_cache

from .errors import MalformedPeriod
from .utils import iter_month_dates, parse_iso_date

logger = logging.getLogger(__name__)

DEFAULT_RULES: tuple[str, ...] = (
    "01-01 | Restoration Day of the Independent Czech State",
    "EASTER-2 | Good Friday | since=2016",
    "EASTER+1 | Easter Monday",
    "05-01 | Labour Day",
    "05-08 | Liberation Day",
    "07-05 | Saints Cyril and Methodius Day",
    "07-06 | Jan Hus Day",
    "09-28 | St. Wenceslas Day",
    "10-28 | Independent Czechoslovak State Day",
    "11-17 | Struggle for Freedom and Democracy Day",
    "12-24 | Christmas Eve",
    "12-25 | Christmas Day",
    "12-26 | St. Stephen's Day",
)


@dataclass(frozen=True)
class HolidayLookup:
    is_holiday: bool
    name: str | None = None


@dataclass(frozen=True)
class HolidayRule:
    kind: str  # 'FIXED' | 'EASTER' | 'ONEOFF'
    name: str
    month: int | None = None
    day: int | None = None
    offset: int = 0
    date: date | None = None
    since: int | None = None

    def resolve(self, year: int) -> date | None:
        if self.since is not None and year < self.since:
            return None
        if self.kind == "FIXED":
            try:
                return date(year, self.month, self.day)  # type: ignore[arg-type]
            except ValueError:
                return None
        if self.kind == "EASTER":
            return easter_date(year) + timedelta(days=self.offset)
        if self.date and self.date.year == year:
            return self.date
        return None


# Western (Gregorian) Easter, Anonymous Gregorian algorithm
def easter_date(year: int) -> date:
    a = year % 19
    b = year // 100
    c = year % 100
    d = b // 4
    e = b % 4
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i = c // 4
    k = c % 4
    l = (32 + 2 * e + 2 * i - h - k) % 7
    m = (a + 11 * h + 22 * l) // 451
    month = (h + l - 7 * m + 114) // 31
    day = ((h + l - 7 * m + 114) % 31) + 1
    return date(year, month, day)


def parse_rules(lines: Iterable[str]) -> list[HolidayRule]:
    """Parse rule lines; malformed lines are skipped with a warning."""
    rules: list[HolidayRule] = []
    for raw in lines:
        line = (raw or "").strip()
        if not line or line.startswith("#"):
            continue
        parts = [p.strip() for p in line.split("|")]
        key = parts[0]
        name = parts[1] if len(parts) >= 2 else ""
        since: int | None = None
        for extra in parts[2:]:
            m_since = re.fullmatch(r"since=(\d{4})", extra)
            if m_since:
                since = int(m_since.group(1))

        m_one = re.fullmatch(r"(\d{4})-(\d{2})-(\d{2})", key)
        if m_one:
            try:
                dt = date(*map(int, m_one.groups()))
            except ValueError:
                logger.warning("Skipping holiday rule with invalid date: %r", line)
                continue
            rules.append(HolidayRule("ONEOFF", name, date=dt, since=since))
            continue

        m_fix = re.fullmatch(r"(\d{2})-(\d{2})", key)
        if m_fix:
            month, day = map(int, m_fix.groups())
            if 1 <= month <= 12 and 1 <= day <= 31:
                rules.append(HolidayRule("FIXED", name, month=month, day=day, since=since))
                continue

        m_e = re.fullmatch(r"EASTER([+-]\d+)?", key, flags=re.IGNORECASE)
        if m_e:
            rules.append(HolidayRule("EASTER", name, offset=int(m_e.group(1) or "0"), since=since))
            continue

        logger.warning("Skipping malformed holiday rule: %r", line)
    return rules


class HolidayCalendar:
    """Holiday lookup computed from a yearly rule table."""

    def __init__(self, rules: Iterable[str] | None = None) -> None:
        self.rules = parse_rules(DEFAULT_RULES if rules is None else rules)
        self._cache: dict[int, dict[date, str]] = {}

    def holidays_for_year(self, year: int) -> dict[date, str]:
        """Return {date: name} for the given year, ordered by date."""
        if year not in self._cache:
            found: dict[date, str] = {}
            for rule in self.rules:
                dt = rule.resolve(year)
                if dt is not None and dt.year == year:
                    found.setdefault(dt, rule.name)
            self._cache[year] = dict(sorted(found.items()))
        return self._cache[year]

    def holidays_in_month(self, year: int, month: int) -> dict[date, str]:
        return {d: n for d, n in self.holidays_for_year(year).items() if d.month == month}

    def is_holiday(self, value: str | date) -> HolidayLookup:
        try:
            d = parse_iso_date(value)
        except MalformedPeriod:
            return HolidayLookup(False)
        name = self.holidays_for_year(d.year).get(d)
        return HolidayLookup(name is not None, name)

    def is_workday(self, value: str | date) -> bool:
        d = parse_iso_date(value)
        return d.weekday() < 5 and not self.is_holiday(d).is_holiday

    def workdays_in_month(self, year: int, month: int) -> list[date]:
        return [d for d in iter_month_dates(year, month) if self.is_workday(d)]


@lru_cache(maxsize=1)
def default_calendar() -> HolidayCalendar:
    return HolidayCalendar()


def is_holiday(value: str | date) -> HolidayLookup:
    """Look a date up in the default calendar."""
    return default_calendar().is_holiday(value)
