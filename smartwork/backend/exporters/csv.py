"""CSV export utilities for timesheet entries."""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable, Mapping, Sequence

from ..aggregation import UNKNOWN_EMPLOYEE, AggregationResult
from ..forms import TimeEntry
from ..utils import format_hours

DETAIL_FIELDS = ["date", "employee", "project", "description", "type", "hours", "category"]
PRODUCTIVE_CATEGORY = "Productive"
ABSENCE_CATEGORY = "Absence"


def render_csv(rows: Iterable[dict[str, object]], fieldnames: Sequence[str]) -> str:
    """Render an iterable of dict rows to a CSV string with given headers.

    - Unknown keys are ignored to keep output stable.
    - Values are stringified via the csv module.
    """
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=list(fieldnames), extrasaction="ignore")
    writer.writeheader()
    for row in rows:
        writer.writerow(row or {})
    return buf.getvalue()


def render_detail_csv(
    entries: Iterable[TimeEntry], employee_names: Mapping[str, str] | None = None
) -> str:
    """One row per entry, sorted by date then employee."""
    names = employee_names or {}
    rows = [
        {
            "date": e.date,
            "employee": names.get(e.employee_id, UNKNOWN_EMPLOYEE),
            "project": e.project,
            "description": e.description,
            "type": e.type.value,
            "hours": format_hours(e.hours),
            "category": PRODUCTIVE_CATEGORY if e.type.is_productive else ABSENCE_CATEGORY,
        }
        for e in sorted(entries, key=lambda e: (e.date, names.get(e.employee_id, ""), e.id))
    ]
    return render_csv(rows, DETAIL_FIELDS)


def render_summary_csv(result: AggregationResult) -> str:
    """Payroll summary: projects, then absences, then totals.

    Sections are separated by a blank row and share the five-column layout
    category,name,regular_hours,overtime_hours,total_hours.
    """
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(["category", "name", "regular_hours", "overtime_hours", "total_hours"])
    for project, totals in result.by_project.items():
        writer.writerow(
            [
                "PROJECT",
                project or "-",
                format_hours(totals.regular),
                format_hours(totals.overtime),
                format_hours(totals.total),
            ]
        )
    writer.writerow([])
    for work_type, hours in result.absence_breakdown().items():
        writer.writerow(["ABSENCE", work_type.value, "", "", format_hours(hours)])
    writer.writerow([])
    writer.writerow(["TOTAL", "Regular work", format_hours(result.total_regular_productive), "", ""])
    writer.writerow(["TOTAL", "Overtime", "", format_hours(result.total_overtime), ""])
    writer.writerow(["TOTAL", "Absence", "", "", format_hours(result.total_absence)])
    writer.writerow(["TOTAL", "All", "", "", format_hours(result.total)])
    return buf.getvalue()
