from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import asdict, dataclass, field
from datetime import date as _date
from typing import Any

from dotenv import load_dotenv
from typing_extensions import NotRequired, TypedDict

from agents import Agent, ModelSettings, RunContextWrapper, function_tool, run_demo_loop

from .backend.ai import TextService
from .backend.aggregation import aggregate, filter_entries, team_overview as team_rows
from .backend.config import CompanyConfig, Policy, load_from_env
from .backend.errors import (
    AIServiceError,
    ConfigError,
    InvalidEntry,
    InvalidTransition,
    LockedMonth,
    MalformedPeriod,
    StaleVersion,
    SubmissionBlocked,
)
from .backend.exporters.csv import render_detail_csv, render_summary_csv
from .backend.forms import TimeEntry, WorkType, expand_range, from_dict as entry_from_dict
from .backend.holidays import HolidayCalendar
from .backend.parsers import resolve_date_phrase
from .backend.status import MonthStatusBook, TimesheetStatus
from .backend.store import EntryStore
from .backend.utils import format_hours, parse_month_key
from .backend.validation import ValidationIssue, validate_month

load_dotenv()

logger = logging.getLogger(__name__)


@dataclass
class TimesheetContext:
    """Per-run context holding the store and the acting employee."""

    employee_id: str
    store: EntryStore = field(default_factory=EntryStore)
    config: CompanyConfig | None = None
    reference_date: str | None = None
    service: TextService | None = None
    holiday_calendar: HolidayCalendar | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.holiday_calendar is None:
            self.holiday_calendar = self.config.holiday_calendar() if self.config else HolidayCalendar()

    @property
    def policy(self) -> Policy:
        return self.config.policy if self.config else Policy()

    @property
    def calendar(self) -> HolidayCalendar:
        return self.holiday_calendar or HolidayCalendar()

    @property
    def employee_names(self) -> dict[str, str]:
        return self.config.employee_names() if self.config else {}

    @property
    def is_manager(self) -> bool:
        if not self.config:
            return False
        emp = self.config.find_employee(self.employee_id)
        return bool(emp and emp.is_manager)

    def today(self) -> str:
        return self.reference_date or _date.today().isoformat()


class EntryInput(TypedDict):
    """One entry of a day being replaced.

    Fields:
        hours: Hours as a decimal.
        type: Work type label (e.g. "Regular work", "Doctor").
        project: Job name; only for Regular work and Overtime.
        description: Optional short description.
    """

    hours: float
    type: str
    project: NotRequired[str]
    description: NotRequired[str]


def _check_month(ctx: TimesheetContext, employee_id: str, month: str) -> list[ValidationIssue]:
    year, mon = parse_month_key(month)
    return validate_month(
        ctx.store.for_employee(employee_id, month),
        year,
        mon,
        reference_date=ctx.today(),
        calendar=ctx.calendar,
        full_day_hours=ctx.policy.full_day_hours,
        exempt_absences_on_non_workdays=ctx.policy.exempt_absences_on_non_workdays,
    )


def _unknown_project(ctx: TimesheetContext, entry: TimeEntry) -> list[str]:
    cfg = ctx.config
    if not cfg or not entry.project:
        return []
    job = cfg.find_job(entry.project)
    if job is None:
        return [f"Unknown job/project: {entry.project} (not in config)"]
    if not job.is_active:
        return [f"Job {job.name} is no longer active."]
    return []


def _error(exc: Exception) -> dict[str, Any]:
    if isinstance(exc, LockedMonth):
        return {"status": "locked", "message": str(exc)}
    if isinstance(exc, InvalidEntry):
        return {"status": "error", "problems": exc.problems}
    if isinstance(exc, SubmissionBlocked):
        return {
            "status": "blocked",
            "message": str(exc),
            "issues": [i.as_dict() for i in exc.issues],
        }
    return {"status": "error", "message": str(exc)}


def _add_entry(ctx: TimesheetContext, data: dict[str, Any]) -> dict[str, Any]:
    try:
        entry = entry_from_dict({**data, "employee_id": ctx.employee_id})
        problems = _unknown_project(ctx, entry)
        if problems:
            return {"status": "error", "problems": problems}
        added = ctx.store.add([entry])
    except (InvalidEntry, LockedMonth) as exc:
        return _error(exc)
    return {
        "status": "ok",
        "count": len(ctx.store.for_employee(ctx.employee_id, entry.month)),
        "entry": added[0].as_row(),
    }


def _review(ctx: TimesheetContext, employee_id: str, month: str, decision: str, comment: str | None) -> dict[str, Any]:
    if not ctx.is_manager:
        return {"status": "error", "message": "Only a manager can approve or reject a month."}
    target = {"approve": TimesheetStatus.APPROVED, "reject": TimesheetStatus.REJECTED}.get(
        (decision or "").strip().lower()
    )
    if target is None:
        return {"status": "error", "message": "Decision must be 'approve' or 'reject'."}
    try:
        updated = ctx.store.status_book.transition(employee_id, month, target, comment)
    except (InvalidTransition, MalformedPeriod) as exc:
        return _error(exc)
    return {"status": "ok", "month_status": updated.as_dict()}


def _edit_entry(ctx: TimesheetContext, entry_id: str, changes: dict[str, Any]) -> dict[str, Any]:
    current = ctx.store.get(entry_id)
    if current is None or current.employee_id != ctx.employee_id:
        return {"status": "error", "message": f"No entry with id {entry_id}."}
    data = {**current.as_row(), **{k: v for k, v in changes.items() if v is not None}}
    try:
        entry = entry_from_dict(data)
        problems = _unknown_project(ctx, entry) if entry.project != current.project else []
        if problems:
            return {"status": "error", "problems": problems}
        ctx.store.upsert([entry])
    except (InvalidEntry, LockedMonth) as exc:
        return _error(exc)
    return {"status": "ok", "entry": entry.as_row()}


def _copy_last(ctx: TimesheetContext, day: str) -> dict[str, Any]:
    last = ctx.store.last_entry(ctx.employee_id)
    if last is None:
        return {"status": "error", "message": "No previous entry to copy."}
    return _add_entry(ctx, {**last.as_row(), "id": None, "date": day})


def _team_overview(ctx: TimesheetContext, month: str) -> dict[str, Any]:
    if not ctx.is_manager:
        return {"status": "error", "message": "Only a manager can see the team overview."}
    try:
        year, mon = parse_month_key(month)
    except MalformedPeriod as exc:
        return _error(exc)
    fund = len(ctx.calendar.workdays_in_month(year, mon)) * ctx.policy.full_day_hours
    rows = team_rows(ctx.store.all(), ctx.employee_names, month, work_fund_hours=fund)
    return {
        "status": "ok",
        "month": month,
        "work_fund_hours": fund,
        "employees": [
            {**asdict(r), "month_status": ctx.store.status_book.peek(r.employee_id, month).status.value}
            for r in rows
        ],
    }


async def _analyze(ctx: TimesheetContext, employee_id: str, month: str) -> dict[str, Any]:
    if not ctx.is_manager:
        return {"status": "error", "message": "Only a manager can request a month analysis."}
    if ctx.service is None:
        return {"status": "error", "message": "The AI service is not configured (set OPENAI_API_KEY)."}
    entries = sorted(ctx.store.for_employee(employee_id, month), key=lambda e: e.date)
    if not entries:
        return {"status": "empty", "message": f"No entries for {month}."}
    try:
        text = await ctx.service.analyze_month(entries)
    except AIServiceError as exc:
        return _error(exc)
    return {"status": "ok", "analysis": text}


def _admin(ctx: TimesheetContext, action: str, *args: str) -> dict[str, Any]:
    if not ctx.is_manager or ctx.config is None:
        return {"status": "error", "message": "Only a manager can change the roster or jobs."}
    try:
        result = getattr(ctx.config, action)(*args)
    except ConfigError as exc:
        return _error(exc)
    # add_employee -> "employee", deactivate_job -> "job"
    return {"status": "ok", action.split("_", 1)[1]: asdict(result)}


@function_tool
def submit_entry(
    ctx: RunContextWrapper[TimesheetContext],
    date: str,
    hours: float,
    type: str = "Regular work",
    project: str | None = None,
    description: str | None = None,
) -> dict[str, Any]:
    """Add a single timesheet entry for the current employee.

    Args:
        date: Work date in YYYY-MM-DD format.
        hours: Hours as a decimal (e.g., 7.5).
        type: Work type label, e.g. "Regular work", "Overtime", "Vacation", "Doctor".
        project: Job name; required for Regular work and Overtime, ignored otherwise.
        description: Optional short description.
    """
    return _add_entry(
        ctx.context,
        {"date": date, "hours": hours, "type": type, "project": project, "description": description},
    )


@function_tool
def submit_range(
    ctx: RunContextWrapper[TimesheetContext],
    date_from: str,
    date_to: str,
    hours: float,
    type: str = "Regular work",
    project: str | None = None,
    description: str | None = None,
) -> dict[str, Any]:
    """Add the same entry to every working day of a date range (weekends and public holidays skipped).

    Args:
        date_from: First day, YYYY-MM-DD.
        date_to: Last day, YYYY-MM-DD (inclusive).
        hours: Hours per day.
        type: Work type label.
        project: Job name for Regular work and Overtime.
        description: Optional short description.
    """
    c = ctx.context
    try:
        template = entry_from_dict(
            {
                "employee_id": c.employee_id,
                "date": date_from,
                "hours": hours,
                "type": type,
                "project": project,
                "description": description,
            }
        )
        problems = _unknown_project(c, template)
        if problems:
            return {"status": "error", "problems": problems}
        added = c.store.add(expand_range(template, date_from, date_to, c.calendar))
    except (InvalidEntry, LockedMonth, MalformedPeriod) as exc:
        return _error(exc)
    return {"status": "ok", "added": len(added), "dates": [e.date for e in added]}


@function_tool
def replace_day(
    ctx: RunContextWrapper[TimesheetContext],
    date: str,
    entries: list[EntryInput],
    expected_version: int | None = None,
) -> dict[str, Any]:
    """Replace all of the current employee's entries on one day.

    Args:
        date: The day, YYYY-MM-DD.
        entries: The complete new set of entries for that day (empty clears the day).
        expected_version: Optional month version the edit is based on (from list_entries).
    """
    c = ctx.context
    try:
        batch = [
            entry_from_dict({**item, "employee_id": c.employee_id, "date": date})
            for item in entries or []
        ]
        problems = [p for e in batch for p in _unknown_project(c, e)]
        if problems:
            return {"status": "error", "problems": problems}
        stored = c.store.replace_day(c.employee_id, date, batch, expected_version=expected_version)
    except (InvalidEntry, LockedMonth, MalformedPeriod, StaleVersion) as exc:
        return _error(exc)
    return {"status": "ok", "entries": [e.as_row() for e in stored]}


@function_tool
def delete_entry(ctx: RunContextWrapper[TimesheetContext], entry_id: str) -> dict[str, Any]:
    """Delete one entry by id."""
    c = ctx.context
    entry = c.store.get(entry_id)
    if entry is None or (entry.employee_id != c.employee_id and not c.is_manager):
        return {"status": "error", "message": f"No entry with id {entry_id}."}
    try:
        c.store.delete(entry_id)
    except LockedMonth as exc:
        return _error(exc)
    return {"status": "ok", "deleted": entry_id}


@function_tool
def edit_entry(
    ctx: RunContextWrapper[TimesheetContext],
    entry_id: str,
    date: str | None = None,
    hours: float | None = None,
    type: str | None = None,
    project: str | None = None,
    description: str | None = None,
) -> dict[str, Any]:
    """Change fields of one existing entry; omitted fields stay as they are.

    Args:
        entry_id: Id of the entry (from list_entries).
        date: New date, YYYY-MM-DD.
        hours: New hours.
        type: New work type label.
        project: New job name (Regular work and Overtime only).
        description: New description.
    """
    changes = {"date": date, "hours": hours, "type": type, "project": project, "description": description}
    return _edit_entry(ctx.context, entry_id, changes)


@function_tool
def copy_last_entry(ctx: RunContextWrapper[TimesheetContext], date: str) -> dict[str, Any]:
    """Repeat the current employee's most recent entry on another day (YYYY-MM-DD)."""
    return _copy_last(ctx.context, date)


@function_tool
def list_entries(ctx: RunContextWrapper[TimesheetContext], month: str) -> dict[str, Any]:
    """List the current employee's entries for a month (YYYY-MM) with the month's status and version."""
    c = ctx.context
    try:
        status = c.store.status_book.view(c.employee_id, month)
    except MalformedPeriod as exc:
        return _error(exc)
    entries = sorted(c.store.for_employee(c.employee_id, month), key=lambda e: e.date)
    return {
        "status": "ok",
        "month_status": status.as_dict(),
        "version": c.store.version(c.employee_id, month),
        "entries": [e.as_row() for e in entries],
    }


@function_tool
def check_month(ctx: RunContextWrapper[TimesheetContext], month: str) -> dict[str, Any]:
    """Validate a month (YYYY-MM): missing days, short/long days, weekend or holiday work."""
    c = ctx.context
    try:
        issues = _check_month(c, c.employee_id, month)
    except MalformedPeriod as exc:
        return _error(exc)
    return {"status": "ok", "issues": [i.as_dict() for i in issues]}


@function_tool
def month_summary(
    ctx: RunContextWrapper[TimesheetContext],
    month: str | None = None,
    project: str | None = None,
    all_employees: bool = False,
) -> dict[str, Any]:
    """Summarize hours per project, type and employee.

    Args:
        month: Optional YYYY-MM filter; omit for the whole history.
        project: Optional project filter.
        all_employees: Managers only; include every employee.
    """
    c = ctx.context
    employee_id = None if (all_employees and c.is_manager) else c.employee_id
    result = aggregate(
        filter_entries(c.store.all(), project=project, employee_id=employee_id, month=month),
        c.employee_names,
    )
    return {
        "status": "ok",
        "by_project": {
            (p or "-"): {"regular": t.regular, "overtime": t.overtime, "total": t.total}
            for p, t in result.by_project.items()
        },
        "by_type": {t.value: h for t, h in result.by_type.items()},
        "by_employee": result.by_employee,
        "total_regular_productive": result.total_regular_productive,
        "total_overtime": result.total_overtime,
        "total_absence": result.total_absence,
        "total": result.total,
    }


@function_tool
def submit_month(ctx: RunContextWrapper[TimesheetContext], month: str) -> dict[str, Any]:
    """Submit a month (YYYY-MM) for approval; the month is locked afterwards."""
    c = ctx.context
    try:
        issues = _check_month(c, c.employee_id, month)
        updated = c.store.status_book.transition(
            c.employee_id,
            month,
            TimesheetStatus.SUBMITTED,
            issues=issues,
            block_on_errors=c.policy.block_submission_on_errors,
        )
    except (SubmissionBlocked, InvalidTransition, MalformedPeriod) as exc:
        return _error(exc)
    warnings = [i.as_dict() for i in issues]
    return {"status": "ok", "month_status": updated.as_dict(), "warnings": warnings}


@function_tool
def reopen_month(ctx: RunContextWrapper[TimesheetContext], month: str) -> dict[str, Any]:
    """Move a rejected month (YYYY-MM) back to draft for editing."""
    c = ctx.context
    try:
        updated = c.store.status_book.transition(c.employee_id, month, TimesheetStatus.DRAFT)
    except (InvalidTransition, MalformedPeriod) as exc:
        return _error(exc)
    return {"status": "ok", "month_status": updated.as_dict()}


@function_tool
def review_month(
    ctx: RunContextWrapper[TimesheetContext],
    employee: str,
    month: str,
    decision: str,
    comment: str | None = None,
) -> dict[str, Any]:
    """Approve or reject an employee's submitted month (managers only).

    Args:
        employee: Employee id or full name.
        month: YYYY-MM.
        decision: "approve" or "reject".
        comment: Required when rejecting.
    """
    c = ctx.context
    emp = c.config.find_employee(employee) if c.config else None
    return _review(c, emp.id if emp else employee, month, decision, comment)


@function_tool
def team_overview(ctx: RunContextWrapper[TimesheetContext], month: str) -> dict[str, Any]:
    """Managers only: hours, entry count, last activity, progress and status per employee for a month (YYYY-MM)."""
    return _team_overview(ctx.context, month)


@function_tool
async def analyze_month(ctx: RunContextWrapper[TimesheetContext], employee: str, month: str) -> dict[str, Any]:
    """Managers only: ask the AI service for a short e-mail style review of an employee's month.

    Args:
        employee: Employee id or full name.
        month: YYYY-MM.
    """
    c = ctx.context
    emp = c.config.find_employee(employee) if c.config else None
    return await _analyze(c, emp.id if emp else employee, month)


@function_tool
def add_employee(
    ctx: RunContextWrapper[TimesheetContext], name: str, email: str, role: str = "Employee"
) -> dict[str, Any]:
    """Managers only: add an employee to the roster. Role is "Employee" or "Manager"."""
    return _admin(ctx.context, "add_employee", name, email, role)


@function_tool
def remove_employee(ctx: RunContextWrapper[TimesheetContext], employee: str) -> dict[str, Any]:
    """Managers only: remove an employee (id or full name) from the roster."""
    return _admin(ctx.context, "remove_employee", employee)


@function_tool
def add_job(ctx: RunContextWrapper[TimesheetContext], code: str, name: str) -> dict[str, Any]:
    """Managers only: add a job (e.g. code "WEB-002", name "Web Maintenance")."""
    return _admin(ctx.context, "add_job", code, name)


@function_tool
def deactivate_job(ctx: RunContextWrapper[TimesheetContext], job: str) -> dict[str, Any]:
    """Managers only: stop offering a job (code or name) for new entries."""
    return _admin(ctx.context, "deactivate_job", job)


@function_tool
def export_csv(ctx: RunContextWrapper[TimesheetContext], month: str | None = None, summary: bool = False) -> str:
    """Export the current employee's entries as CSV.

    Args:
        month: Optional YYYY-MM filter.
        summary: If true, export the payroll summary instead of one row per entry.
    """
    c = ctx.context
    entries = filter_entries(c.store.all(), employee_id=c.employee_id, month=month)
    if summary:
        csv_text = render_summary_csv(aggregate(entries, c.employee_names))
    else:
        csv_text = render_detail_csv(entries, c.employee_names)
    save_path = os.environ.get("TIMESHEET_SAVE_PATH")
    if save_path:
        try:
            folder = os.path.dirname(save_path)
            if folder:
                os.makedirs(folder, exist_ok=True)
            with open(save_path, "w", encoding="utf-8") as f:
                f.write(csv_text)
        except OSError as exc:
            # Keep tool output strictly CSV content.
            logger.warning("Could not save CSV to %s: %s", save_path, exc)
    return csv_text


@function_tool
def resolve_date(phrase: str, timezone: str | None = None, base_date: str | None = None) -> str:
    """Resolve a relative or natural-language date to ISO YYYY-MM-DD.

    Args:
        phrase: A date like "today", "yesterday", "September 9 2025" or "9. 9. 2025".
        timezone: Optional IANA timezone (e.g., Europe/Prague). Defaults to env TIMESHEET_TZ or system tz.
        base_date: Optional YYYY-MM-DD used as an anchor for relative phrases (tests/reproducibility).
    Returns:
        ISO date string (YYYY-MM-DD), or empty string if not understood.
    """
    tz = timezone or os.environ.get("TIMESHEET_TZ")
    base = base_date or os.environ.get("TIMESHEET_BASE_DATE")
    return resolve_date_phrase(phrase, timezone=tz, base_date=base)


@function_tool
def list_company_info(ctx: RunContextWrapper[TimesheetContext]) -> dict[str, Any]:
    """Return the roster, active jobs, work types and the full-day hour norm."""
    cfg = ctx.context.config
    work_types = [
        {"label": t.value, "productive": t.is_productive, "requires_project": t.requires_project}
        for t in WorkType
    ]
    if not cfg:
        return {"status": "empty", "employees": [], "jobs": [], "work_types": work_types}
    return {
        "status": "ok",
        "company": cfg.name,
        "employees": [{"id": e.id, "name": e.name, "role": e.role} for e in cfg.employees],
        "jobs": [{"code": j.code, "name": j.name} for j in cfg.active_jobs()],
        "work_types": work_types,
        "full_day_hours": format_hours(cfg.policy.full_day_hours),
    }


def build_agent(model_name: str) -> Agent[TimesheetContext]:
    instructions = (
        "You are a meticulous timesheet assistant for a small company. "
        "The user is an employee (or a manager) recording daily hours against jobs or absence categories. "
        "Capture entries with: date (YYYY-MM-DD), hours (decimal), type (a work type label), project (job name, "
        "only for Regular work and Overtime), description (optional). "
        "Ask targeted follow-up questions whenever required fields are missing or ambiguous; do not invent values. "
        "One sentence may contain several entries, e.g. '4 hours website and 2 hours doctor' is two entries. "
        "Use submit_entry for single entries and submit_range when the same entry repeats over several days. "
        "To correct a day, call replace_day with the complete new set of entries for that day; "
        "to change a single entry use edit_entry, and copy_last_entry repeats the previous entry on a new day. "
        "When the user mentions a relative or natural-language date, use resolve_date; do not guess. "
        "Use list_company_info to see jobs, work types and the roster. Never put a project on absence types. "
        "Before submitting a month, run check_month and tell the user about missing days or unusual hours. "
        "Submit with submit_month; submitted and approved months are locked. "
        "Managers can approve or reject with review_month; rejecting needs a comment. "
        "Managers also get team_overview, analyze_month and the roster tools (add_employee, remove_employee, "
        "add_job, deactivate_job). "
        "Use month_summary for totals and export_csv when the user asks for a CSV, returning only the CSV content. "
        "Be concise and ask one question at a time."
    )

    return Agent[TimesheetContext](
        name="Timesheet Assistant",
        instructions=instructions,
        tools=[
            list_company_info,
            resolve_date,
            submit_entry,
            submit_range,
            replace_day,
            delete_entry,
            edit_entry,
            copy_last_entry,
            list_entries,
            check_month,
            month_summary,
            submit_month,
            reopen_month,
            review_month,
            team_overview,
            analyze_month,
            add_employee,
            remove_employee,
            add_job,
            deactivate_job,
            export_csv,
        ],
        model=model_name,
        model_settings=ModelSettings(),
    )


def build_context(
    config: CompanyConfig | None,
    employee_id: str | None = None,
    service: TextService | None = None,
) -> TimesheetContext:
    policy = config.policy if config else Policy()
    book = MonthStatusBook(reset_status_on_unseen_month=policy.reset_status_on_unseen_month)
    if not employee_id:
        employee_id = config.employees[0].id if config and config.employees else "1"
    return TimesheetContext(
        employee_id=employee_id,
        store=EntryStore(book),
        config=config,
        reference_date=os.environ.get("TIMESHEET_BASE_DATE"),
        service=service,
        holiday_calendar=config.holiday_calendar() if config else HolidayCalendar(),
    )


async def main() -> None:
    logging.basicConfig(level=os.environ.get("SMARTWORK_LOG_LEVEL", "INFO").upper())
    model = os.environ.get("OPENAI_MODEL", "gpt-4o-mini")

    # Basic check for API key; the SDK also checks env during first call
    service = None
    if os.environ.get("OPENAI_API_KEY"):
        service = TextService()
    else:
        logger.warning("OPENAI_API_KEY is not set. Set it in your shell or a .env file.")

    config = load_from_env(
        default_path=os.path.join(os.path.dirname(__file__), "company.example.json")
    )
    context = build_context(config, os.environ.get("SMARTWORK_EMPLOYEE_ID"), service)
    agent = build_agent(model)
    print("Timesheet Assistant ready. Describe your work or ask for a summary. Ctrl+C to exit.")
    await run_demo_loop(agent, stream=True, context=context)


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
