"""Exceptions raised by the timesheet backend.

Validation findings are returned as data (see `validation.ValidationIssue`);
everything here is a hard failure the caller has to handle.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any


class TimesheetError(Exception):
    """Base class for all backend errors."""


class InvalidEntry(TimesheetError):
    """An entry violates the data model (missing project, bad date, ...)."""

    def __init__(self, problems: Sequence[str]) -> None:
        self.problems = list(problems)
        super().__init__("; ".join(self.problems) or "Invalid entry.")


class LockedMonth(TimesheetError):
    """Entries of a submitted or approved month cannot be changed."""

    def __init__(self, employee_id: str, month: str, status: str) -> None:
        self.employee_id = employee_id
        self.month = month
        self.status = status
        super().__init__(f"Month {month} is {status.lower()} and locked for editing.")


class InvalidTransition(TimesheetError):
    """The requested status change is not allowed from the current status."""


class SubmissionBlocked(TimesheetError):
    """Submission refused because the month still has blocking issues."""

    def __init__(self, month: str, issues: Sequence[Any]) -> None:
        self.month = month
        self.issues = list(issues)
        super().__init__(
            f"Month {month} has {len(self.issues)} blocking issue(s) and cannot be submitted."
        )


class StaleVersion(TimesheetError):
    """An edit was based on an outdated version of the month."""

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Month changed meanwhile (expected version {expected}, now {actual}).")


class MalformedPeriod(TimesheetError, ValueError):
    """Year, month or date input that cannot describe a calendar period."""


class AIServiceError(TimesheetError):
    """The external AI text service failed or timed out."""


class ConfigError(TimesheetError):
    """The company configuration file is unreadable or malformed."""
