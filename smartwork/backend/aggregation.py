"""Hour sums for the dashboard and payroll exports.

Each group is summed with `math.fsum`, so results do not depend on the order
entries arrive in. Keys are exposed in a fixed order: projects and employee
names sorted, work types in declaration order.
"""

from __future__ import annotations

import math
from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from .forms import TimeEntry, WorkType

UNKNOWN_EMPLOYEE = "Unknown"


@dataclass(frozen=True)
class ProjectTotals:
    regular: float = 0.0
    overtime: float = 0.0
    total: float = 0.0


@dataclass(frozen=True)
class AggregationResult:
    by_project: dict[str, ProjectTotals] = field(default_factory=dict)
    by_employee: dict[str, float] = field(default_factory=dict)
    by_type: dict[WorkType, float] = field(default_factory=dict)
    total_regular_productive: float = 0.0
    total_overtime: float = 0.0
    total_absence: float = 0.0
    total: float = 0.0

    @property
    def total_worked(self) -> float:
        return self.total_regular_productive + self.total_overtime

    def absence_breakdown(self) -> dict[WorkType, float]:
        return {t: h for t, h in self.by_type.items() if not t.is_productive}


def aggregate(
    entries: Iterable[TimeEntry],
    employee_names: Mapping[str, str] | None = None,
) -> AggregationResult:
    """Sum hours per project, employee and type plus the four rollups."""
    names = employee_names or {}
    # project -> ([regular hours], [overtime hours])
    projects: dict[str, tuple[list[float], list[float]]] = defaultdict(lambda: ([], []))
    by_employee: dict[str, list[float]] = defaultdict(list)
    by_type: dict[WorkType, list[float]] = defaultdict(list)
    regular: list[float] = []
    overtime: list[float] = []
    absence: list[float] = []

    for e in entries:
        if e.type.is_productive:
            reg_bucket, ot_bucket = projects[e.project]
            if e.type.is_overtime:
                ot_bucket.append(e.hours)
                overtime.append(e.hours)
            else:
                reg_bucket.append(e.hours)
                regular.append(e.hours)
        else:
            absence.append(e.hours)
        by_type[e.type].append(e.hours)
        by_employee[names.get(e.employee_id, UNKNOWN_EMPLOYEE)].append(e.hours)

    by_project: dict[str, ProjectTotals] = {}
    for project in sorted(projects):
        reg_bucket, ot_bucket = projects[project]
        by_project[project] = ProjectTotals(
            regular=math.fsum(reg_bucket),
            overtime=math.fsum(ot_bucket),
            total=math.fsum(reg_bucket + ot_bucket),
        )

    return AggregationResult(
        by_project=by_project,
        by_employee={name: math.fsum(by_employee[name]) for name in sorted(by_employee)},
        by_type={t: math.fsum(by_type[t]) for t in WorkType if t in by_type},
        total_regular_productive=math.fsum(regular),
        total_overtime=math.fsum(overtime),
        total_absence=math.fsum(absence),
        total=math.fsum(regular + overtime + absence),
    )


def filter_entries(
    entries: Iterable[TimeEntry],
    *,
    project: str | None = None,
    employee_id: str | None = None,
    month: str | None = None,
) -> list[TimeEntry]:
    """Apply the reporting filters; `None` means "all"."""
    return [
        e
        for e in entries
        if (project is None or e.project == project)
        and (employee_id is None or e.employee_id == employee_id)
        and (month is None or e.date.startswith(month))
    ]


@dataclass(frozen=True)
class EmployeeMonthStats:
    employee_id: str
    name: str
    total_hours: float
    entry_count: int
    last_entry_date: str | None
    progress: float  # percent of the month's work fund, capped at 100


def team_overview(
    entries: Iterable[TimeEntry],
    employee_names: Mapping[str, str],
    month: str,
    *,
    work_fund_hours: float,
) -> list[EmployeeMonthStats]:
    """One row per roster employee for the manager's month view."""
    by_employee: dict[str, list[TimeEntry]] = defaultdict(list)
    for e in filter_entries(entries, month=month):
        by_employee[e.employee_id].append(e)

    rows: list[EmployeeMonthStats] = []
    for employee_id, name in employee_names.items():
        mine = by_employee.get(employee_id, [])
        total = math.fsum(e.hours for e in mine)
        progress = min(100.0, total / work_fund_hours * 100) if work_fund_hours > 0 else 0.0
        rows.append(
            EmployeeMonthStats(
                employee_id=employee_id,
                name=name,
                total_hours=total,
                entry_count=len(mine),
                last_entry_date=max((e.date for e in mine), default=None),
                progress=round(progress, 1),
            )
        )
    return rows
