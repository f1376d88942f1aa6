"""Session orchestration for one employee's month.

This module defines the high-level interaction loop:
    ask -> parse -> validate -> confirm/revise -> finalize.

Text is parsed by the AI text service when one is configured, otherwise by
the offline heuristic parser. A UI drives the loop and renders the events.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any

from .aggregation import aggregate
from .ai import TextService
from .config import CompanyConfig
from .errors import AIServiceError, InvalidEntry, LockedMonth
from .forms import TimeEntry, from_parsed
from .parsers import parse_freeform
from .store import EntryStore
from .validation import count_by_severity, validate_month


@dataclass
class AgentEvent:
    """A simple event structure suitable for streaming to a UI."""

    type: str
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass
class AgentState:
    """Holds session state while collecting entries."""

    pending: list[TimeEntry] = field(default_factory=list)
    added: list[TimeEntry] = field(default_factory=list)


class TimesheetAgent:
    """Interactive entry session for one employee and one month."""

    def __init__(
        self,
        store: EntryStore,
        employee_id: str,
        month: str,
        *,
        config: CompanyConfig | None = None,
        service: TextService | None = None,
        reference_date: str | None = None,
    ) -> None:
        self.store = store
        self.employee_id = employee_id
        self.month = month
        self.config = config
        self.service = service
        self.reference_date = reference_date or date.today().isoformat()
        self.state = AgentState()

    def start(self) -> AgentEvent:
        """Start the session and report whether the month can be edited."""
        status = self.store.status_book.view(self.employee_id, self.month)
        return AgentEvent(
            type="started",
            payload={
                "message": "Describe your work, e.g. 'yesterday 6h Website Redesign and 2h doctor'.",
                "status": status.as_dict(),
                "locked": status.is_locked,
            },
        )

    async def provide_input(self, text: str) -> list[AgentEvent]:
        """Parse user text into pending entries awaiting confirmation."""
        events = [AgentEvent(type="user_input", payload={"text": text})]
        try:
            items = await self._parse(text)
        except AIServiceError as exc:
            events.append(AgentEvent(type="error", payload={"message": str(exc)}))
            return events
        events.append(AgentEvent(type="parsed", payload={"items": items}))

        entries: list[TimeEntry] = []
        problems: list[str] = []
        for item in items:
            try:
                entries.append(
                    from_parsed(
                        item,
                        employee_id=self.employee_id,
                        reference_date=self.reference_date,
                        jobs=self.config.active_jobs() if self.config else (),
                    )
                )
            except InvalidEntry as exc:
                problems.extend(exc.problems)

        if entries and not problems:
            self.state.pending = entries
            events.append(
                AgentEvent(
                    type="needs_confirmation",
                    payload={
                        "message": "Please confirm these entries.",
                        "proposed": [e.as_row() for e in entries],
                    },
                )
            )
        else:
            events.append(
                AgentEvent(
                    type="needs_revision",
                    payload={
                        "message": "I need a bit more detail.",
                        "problems": problems or ["No entries recognized."],
                    },
                )
            )
        return events

    def confirm(self) -> list[AgentEvent]:
        """Store the pending entries."""
        if not self.state.pending:
            return [AgentEvent(type="error", payload={"message": "Nothing to confirm yet."})]
        try:
            added = self.store.add(self.state.pending)
        except LockedMonth as exc:
            return [AgentEvent(type="locked", payload={"message": str(exc)})]
        except InvalidEntry as exc:
            return [AgentEvent(type="needs_revision", payload={"problems": exc.problems})]
        self.state.pending = []
        self.state.added.extend(added)
        return [
            AgentEvent(type="confirmed", payload={"entries": [e.as_row() for e in added]}),
            AgentEvent(
                type="ready_for_next",
                payload={
                    "message": "Recorded. Add another entry or say 'done' to finish.",
                    "count": len(self.store.for_employee(self.employee_id, self.month)),
                },
            ),
        ]

    def finalize(self) -> AgentEvent:
        """Finish the session with the month's entries, issues and totals."""
        entries = self.store.for_employee(self.employee_id, self.month)
        year, month = self.month.split("-")
        policy = self.config.policy if self.config else None
        issues = validate_month(
            entries,
            year,
            month,
            reference_date=self.reference_date,
            calendar=self.config.holiday_calendar() if self.config else None,
            full_day_hours=policy.full_day_hours if policy else 8.0,
            exempt_absences_on_non_workdays=policy.exempt_absences_on_non_workdays if policy else False,
        )
        totals = aggregate(entries, self.config.employee_names() if self.config else None)
        return AgentEvent(
            type="finalized",
            payload={
                "message": "Session complete.",
                "entries": [e.as_row() for e in entries],
                "issues": [i.as_dict() for i in issues],
                "issue_counts": count_by_severity(issues),
                "total_hours": totals.total,
            },
        )

    # --- Internal helpers ---

    async def _parse(self, text: str) -> list[dict[str, Any]]:
        if self.service is not None:
            jobs = self.config.active_jobs() if self.config else ()
            return await self.service.parse_entries(text, self.reference_date, jobs)
        parsed = parse_freeform(text, base_date=self.reference_date)
        return [parsed] if parsed.get("hours") is not None else []
