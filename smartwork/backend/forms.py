"""Schemas and validation for timesheet entries.

`WorkType` carries the only productive/absence classification table in the
package; the validator, the aggregator and the exporters all ask it.
"""

from __future__ import annotations

import math
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any

from .errors import InvalidEntry, MalformedPeriod
from .utils import parse_iso_date

if TYPE_CHECKING:
    from .config import Job
    from .holidays import HolidayCalendar

MAX_HOURS_PER_ENTRY = 24.0
FALLBACK_PROJECT = "General"


class WorkType(str, Enum):
    REGULAR = "Regular work"
    OVERTIME = "Overtime"
    VACATION = "Vacation"
    SICK_DAY = "Sick day"
    HOLIDAY = "Holiday"
    CARE_LEAVE = "Care leave"
    DOCTOR = "Doctor"
    BUSINESS_TRIP = "Business trip"
    UNPAID_LEAVE = "Unpaid leave"
    COMPENSATORY_LEAVE = "Compensatory leave"
    OTHER_OBSTACLE = "Other obstacle"
    REDUCED_PAY = "Reduced pay (60%)"

    @property
    def is_productive(self) -> bool:
        return _CLASSIFICATION[self][0]

    @property
    def requires_project(self) -> bool:
        return _CLASSIFICATION[self][1]

    @property
    def expected_on_non_workday(self) -> bool:
        return _CLASSIFICATION[self][2]

    @property
    def is_overtime(self) -> bool:
        return self is WorkType.OVERTIME

    @classmethod
    def lookup(cls, value: str | WorkType) -> WorkType:
        """Find a type by label or member name, case-insensitively."""
        if isinstance(value, WorkType):
            return value
        v = (value or "").strip().lower()
        for member in cls:
            if v in (member.value.lower(), member.name.lower()):
                return member
        raise InvalidEntry([f"Unknown work type: {value!r}"])


# type -> (productive, requires project, expected on weekends/holidays)
_CLASSIFICATION: dict[WorkType, tuple[bool, bool, bool]] = {
    WorkType.REGULAR: (True, True, False),
    WorkType.OVERTIME: (True, True, True),
    WorkType.BUSINESS_TRIP: (True, False, True),
    WorkType.VACATION: (False, False, False),
    WorkType.SICK_DAY: (False, False, False),
    WorkType.HOLIDAY: (False, False, False),
    WorkType.CARE_LEAVE: (False, False, False),
    WorkType.DOCTOR: (False, False, False),
    WorkType.UNPAID_LEAVE: (False, False, False),
    WorkType.COMPENSATORY_LEAVE: (False, False, False),
    WorkType.OTHER_OBSTACLE: (False, False, False),
    WorkType.REDUCED_PAY: (False, False, False),
}


@dataclass(frozen=True)
class TimeEntry:
    """One unit of reported time."""

    employee_id: str
    date: str
    hours: float
    type: WorkType = WorkType.REGULAR
    project: str = ""
    description: str = ""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def month(self) -> str:
        return self.date[:7]

    def as_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "date": self.date,
            "project": self.project,
            "description": self.description,
            "hours": self.hours,
            "type": self.type.value,
        }


def normalize(entry: TimeEntry) -> TimeEntry:
    """Clear the project of types that never carry one."""
    if not entry.type.requires_project and entry.project:
        return replace(entry, project="")
    return entry


def from_dict(data: Mapping[str, Any]) -> TimeEntry:
    """Convert a dictionary to a normalized `TimeEntry` with basic coercion."""
    problems: list[str] = []
    try:
        work_type = WorkType.lookup(data.get("type") or WorkType.REGULAR)
    except InvalidEntry as exc:
        problems.extend(exc.problems)
        work_type = WorkType.REGULAR
    try:
        hours = float(data.get("hours", 0) or 0)
    except (TypeError, ValueError):
        problems.append(f"Hours must be a number, got {data.get('hours')!r}.")
        hours = 0.0
    if problems:
        raise InvalidEntry(problems)
    kwargs: dict[str, Any] = {}
    if data.get("id"):
        kwargs["id"] = str(data["id"])
    return normalize(
        TimeEntry(
            employee_id=str(data.get("employee_id", "") or ""),
            date=str(data.get("date", "") or "").strip(),
            hours=hours,
            type=work_type,
            project=str(data.get("project") or "").strip(),
            description=str(data.get("description") or "").strip(),
            **kwargs,
        )
    )


def validate(entry: TimeEntry) -> list[str]:
    """Return a list of human-readable issues if validation fails."""
    issues: list[str] = []
    if not entry.employee_id.strip():
        issues.append("Employee is required.")
    if not entry.date.strip():
        issues.append("Date is required.")
    else:
        try:
            parse_iso_date(entry.date)
        except MalformedPeriod as exc:
            issues.append(str(exc))
    if not math.isfinite(entry.hours):
        issues.append("Hours must be a number.")
    elif entry.hours < 0:
        issues.append("Hours must not be negative.")
    elif entry.hours > MAX_HOURS_PER_ENTRY:
        issues.append(f"Hours must not exceed {MAX_HOURS_PER_ENTRY:g} per entry.")
    if entry.type.requires_project and not entry.project.strip():
        issues.append(f"Project is required for {entry.type.value}.")
    if not entry.type.requires_project and entry.project.strip():
        issues.append(f"{entry.type.value} entries must not carry a project.")
    return issues


def ensure_valid(entry: TimeEntry) -> TimeEntry:
    problems = validate(entry)
    if problems:
        raise InvalidEntry(problems)
    return entry


def expand_range(
    template: TimeEntry,
    date_from: str | date,
    date_to: str | date,
    calendar: HolidayCalendar | None = None,
) -> list[TimeEntry]:
    """Copy `template` onto every weekday between two dates, inclusive.

    Public holidays are skipped too when a calendar is given. Each generated
    entry gets its own id.
    """
    start = parse_iso_date(date_from)
    end = parse_iso_date(date_to)
    if end < start:
        raise InvalidEntry([f"Range end {end} is before start {start}."])
    out: list[TimeEntry] = []
    current = start
    while current <= end:
        workday = current.weekday() < 5
        if workday and calendar is not None:
            workday = not calendar.is_holiday(current).is_holiday
        if workday:
            out.append(replace(template, id=str(uuid.uuid4()), date=current.isoformat()))
        current += timedelta(days=1)
    if not out:
        raise InvalidEntry(["The selected range contains no working days."])
    return out


def match_project(value: str | None, jobs: Iterable[Job]) -> str | None:
    """Map a project mention onto a configured job name (by name or code)."""
    v = (value or "").strip().lower()
    if not v:
        return None
    for job in jobs:
        if v in (job.name.strip().lower(), job.code.strip().lower()):
            return job.name
    return None


def from_parsed(
    item: Mapping[str, Any],
    *,
    employee_id: str,
    reference_date: str,
    jobs: Iterable[Job] = (),
) -> TimeEntry:
    """Normalize one weakly-typed parser item into a strict `TimeEntry`.

    - Missing date falls back to the reference date; missing type to regular work.
    - Projects are matched against configured jobs; unmatched project-type
      entries keep the raw mention, or "General" when there is none.
    - Types without a project have it cleared.
    """
    jobs = list(jobs)
    raw_project = item.get("project")
    work_type = WorkType.lookup(item.get("type") or WorkType.REGULAR)
    project = ""
    if work_type.requires_project:
        project = match_project(raw_project, jobs) or (str(raw_project or "").strip() or FALLBACK_PROJECT)
    entry = from_dict(
        {
            "employee_id": employee_id,
            "date": item.get("date") or reference_date,
            "hours": item.get("hours"),
            "type": work_type,
            "project": project,
            "description": item.get("description"),
        }
    )
    return ensure_valid(entry)
