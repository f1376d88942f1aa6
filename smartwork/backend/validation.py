"""Month validation engine.

Inspects one employee's entries for one calendar month and reports, per day,
missing workdays, short or long days and work logged on weekends or public
holidays. Findings are returned as data; only malformed input raises.
"""

from __future__ import annotations

import math
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from enum import Enum

from .forms import TimeEntry
from .holidays import HolidayCalendar, default_calendar
from .utils import (
    describe_hours_delta,
    format_hours,
    is_weekend,
    iter_month_dates,
    parse_iso_date,
    parse_year_month,
)


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class IssueKind(str, Enum):
    MISSING_DAY = "MissingDay"
    INSUFFICIENT_HOURS = "InsufficientHours"
    EXCESSIVE_HOURS = "ExcessiveHours"
    WEEKEND_WORK = "WeekendWork"
    OTHER = "Other"


@dataclass(frozen=True)
class ValidationIssue:
    date: str
    severity: Severity
    kind: IssueKind
    message: str
    delta: float | None = None

    def as_dict(self) -> dict[str, object]:
        return {
            "date": self.date,
            "severity": self.severity.value,
            "kind": self.kind.value,
            "message": self.message,
            "delta": self.delta,
        }


def validate_month(
    entries: Iterable[TimeEntry],
    year: str | int,
    month: str | int,
    *,
    reference_date: str | date | None = None,
    calendar: HolidayCalendar | None = None,
    full_day_hours: float = 8.0,
    exempt_absences_on_non_workdays: bool = False,
) -> list[ValidationIssue]:
    """Compute the ordered issue list for one employee's month.

    Days after `reference_date` (default: today) are never reported as missing
    or short, but long days and non-workday entries are still flagged since
    data can be entered ahead of time.
    """
    y, m = parse_year_month(year, month)
    today = parse_iso_date(reference_date) if reference_date is not None else date.today()
    cal = calendar or default_calendar()

    by_day: dict[date, list[TimeEntry]] = defaultdict(list)
    for entry in entries:
        d = parse_iso_date(entry.date)
        if d.year == y and d.month == m:
            by_day[d].append(entry)

    issues: list[ValidationIssue] = []
    for day in iter_month_dates(y, m):
        day_entries = by_day.get(day, [])
        issues.extend(
            _check_day(
                day,
                day_entries,
                cal,
                future=day > today,
                full_day=full_day_hours,
                exempt_absences=exempt_absences_on_non_workdays,
            )
        )
    return issues


def _check_day(
    day: date,
    entries: Sequence[TimeEntry],
    cal: HolidayCalendar,
    *,
    future: bool,
    full_day: float,
    exempt_absences: bool,
) -> list[ValidationIssue]:
    iso = day.isoformat()
    holiday = cal.is_holiday(day)
    weekend = is_weekend(day)
    has_any_entry = bool(entries)
    day_total = math.fsum(e.hours for e in entries)
    found: list[ValidationIssue] = []

    if not weekend and not holiday.is_holiday:
        if not has_any_entry:
            if not future:
                found.append(
                    ValidationIssue(
                        iso, Severity.ERROR, IssueKind.MISSING_DAY, f"No entry for workday {iso}."
                    )
                )
            return found
        if day_total < full_day and not future:
            found.append(
                ValidationIssue(
                    iso,
                    Severity.WARNING,
                    IssueKind.INSUFFICIENT_HOURS,
                    f"{iso}: {describe_hours_delta(day_total, full_day)}.",
                    delta=round(full_day - day_total, 2),
                )
            )
        elif day_total > full_day:
            found.append(
                ValidationIssue(
                    iso,
                    Severity.WARNING,
                    IssueKind.EXCESSIVE_HOURS,
                    f"{iso}: {describe_hours_delta(day_total, full_day)}.",
                    delta=round(day_total - full_day, 2),
                )
            )
        return found

    if not has_any_entry:
        return found
    if any(e.type.expected_on_non_workday for e in entries):
        return found
    if exempt_absences and not any(e.type.is_productive for e in entries):
        return found
    reason = f"public holiday ({holiday.name})" if holiday.is_holiday else "a weekend"
    found.append(
        ValidationIssue(
            iso,
            Severity.WARNING,
            IssueKind.WEEKEND_WORK,
            f"{iso}: {format_hours(day_total)}h reported on {reason}.",
        )
    )
    return found


def has_blocking_issues(issues: Iterable[ValidationIssue]) -> bool:
    return any(i.severity is Severity.ERROR for i in issues)


def count_by_severity(issues: Iterable[ValidationIssue]) -> dict[str, int]:
    counts = {s.value: 0 for s in Severity}
    for issue in issues:
        counts[issue.severity.value] += 1
    return counts
