"""Month status state machine: Draft -> Submitted -> Approved/Rejected.

Submitted and Approved months are locked; Draft and Rejected are editable.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum

from .errors import InvalidTransition, LockedMonth, SubmissionBlocked
from .utils import parse_month_key
from .validation import Severity, ValidationIssue

logger = logging.getLogger(__name__)


class TimesheetStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


ALLOWED_TRANSITIONS: dict[TimesheetStatus, frozenset[TimesheetStatus]] = {
    TimesheetStatus.DRAFT: frozenset({TimesheetStatus.SUBMITTED}),
    TimesheetStatus.SUBMITTED: frozenset({TimesheetStatus.APPROVED, TimesheetStatus.REJECTED}),
    TimesheetStatus.REJECTED: frozenset({TimesheetStatus.DRAFT, TimesheetStatus.SUBMITTED}),
    TimesheetStatus.APPROVED: frozenset(),
}

LOCKED_STATUSES = frozenset({TimesheetStatus.SUBMITTED, TimesheetStatus.APPROVED})


@dataclass(frozen=True)
class MonthStatus:
    month: str
    status: TimesheetStatus = TimesheetStatus.DRAFT
    manager_comment: str | None = None
    submitted_at: datetime | None = None
    approved_at: datetime | None = None

    @property
    def is_locked(self) -> bool:
        return self.status in LOCKED_STATUSES

    def as_dict(self) -> dict[str, str | None]:
        return {
            "month": self.month,
            "status": self.status.value,
            "manager_comment": self.manager_comment,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "approved_at": self.approved_at.isoformat() if self.approved_at else None,
        }


def update_status(
    current: MonthStatus,
    new_status: TimesheetStatus | str,
    comment: str | None = None,
    *,
    issues: Iterable[ValidationIssue] = (),
    block_on_errors: bool = True,
    now: datetime | None = None,
) -> MonthStatus:
    """Return the status record after a transition, or raise.

    `issues` is the month's current validation result; it only matters when
    moving to Submitted.
    """
    try:
        target = TimesheetStatus(new_status)
    except ValueError as exc:
        raise InvalidTransition(f"Unknown status {new_status!r}.") from exc
    if target not in ALLOWED_TRANSITIONS[current.status]:
        raise InvalidTransition(
            f"Cannot change month {current.month} from {current.status.value} to {target.value}."
        )
    comment = (comment or "").strip() or None
    stamp = now or datetime.now(timezone.utc)

    if target is TimesheetStatus.SUBMITTED:
        errors = [i for i in issues if i.severity is Severity.ERROR]
        if errors:
            if block_on_errors:
                raise SubmissionBlocked(current.month, errors)
            logger.warning(
                "Submitting %s with %d unresolved error(s)", current.month, len(errors)
            )
    if target is TimesheetStatus.REJECTED and not comment:
        raise InvalidTransition("A comment is required when rejecting a month.")

    updated = replace(
        current,
        status=target,
        manager_comment=comment or current.manager_comment,
        submitted_at=stamp if target is TimesheetStatus.SUBMITTED else current.submitted_at,
        approved_at=stamp if target is TimesheetStatus.APPROVED else current.approved_at,
    )
    logger.info("Month %s: %s -> %s", current.month, current.status.value, target.value)
    return updated


class MonthStatusBook:
    """Status records per (employee, month).

    With `reset_status_on_unseen_month` the book keeps a single current record
    per employee and viewing another month starts it over as Draft.
    """

    def __init__(self, *, reset_status_on_unseen_month: bool = False) -> None:
        self.reset_status_on_unseen_month = reset_status_on_unseen_month
        self._records: dict[tuple[str, str], MonthStatus] = {}
        self._current: dict[str, MonthStatus] = {}

    def view(self, employee_id: str, month: str) -> MonthStatus:
        """Return the month's status, creating a Draft on first view."""
        parse_month_key(month)
        if self.reset_status_on_unseen_month:
            record = self._current.get(employee_id)
            if record is None or record.month != month:
                record = MonthStatus(month=month)
                self._current[employee_id] = record
            return record
        key = (employee_id, month)
        if key not in self._records:
            self._records[key] = MonthStatus(month=month)
        return self._records[key]

    def peek(self, employee_id: str, month: str) -> MonthStatus:
        """Like `view` but never creates or resets anything."""
        if self.reset_status_on_unseen_month:
            record = self._current.get(employee_id)
            return record if record is not None and record.month == month else MonthStatus(month)
        return self._records.get((employee_id, month)) or MonthStatus(month)

    def transition(
        self,
        employee_id: str,
        month: str,
        new_status: TimesheetStatus | str,
        comment: str | None = None,
        *,
        issues: Iterable[ValidationIssue] = (),
        block_on_errors: bool = True,
        now: datetime | None = None,
    ) -> MonthStatus:
        updated = update_status(
            self.view(employee_id, month),
            new_status,
            comment,
            issues=issues,
            block_on_errors=block_on_errors,
            now=now,
        )
        if self.reset_status_on_unseen_month:
            self._current[employee_id] = updated
        else:
            self._records[(employee_id, month)] = updated
        return updated

    def is_locked(self, employee_id: str, month: str) -> bool:
        return self.peek(employee_id, month).is_locked

    def ensure_editable(self, employee_id: str, month: str) -> None:
        record = self.peek(employee_id, month)
        if record.is_locked:
            raise LockedMonth(employee_id, month, record.status.value)
