"""In-memory entry store with month-lock enforcement.

Every mutation is checked in full before anything is applied, so a refused
request leaves the store untouched.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable

from .errors import InvalidEntry, StaleVersion
from .forms import TimeEntry, ensure_valid
from .status import MonthStatusBook
from .utils import month_key, parse_iso_date

logger = logging.getLogger(__name__)


class EntryStore:
    """Entries keyed by id, in insertion order."""

    def __init__(self, status_book: MonthStatusBook | None = None) -> None:
        self.status_book = status_book or MonthStatusBook()
        self._entries: dict[str, TimeEntry] = {}
        self._versions: dict[tuple[str, str], int] = defaultdict(int)

    # --- Queries ---

    def get(self, entry_id: str) -> TimeEntry | None:
        return self._entries.get(entry_id)

    def all(self) -> list[TimeEntry]:
        return list(self._entries.values())

    def for_employee(self, employee_id: str, month: str | None = None) -> list[TimeEntry]:
        return [
            e
            for e in self._entries.values()
            if e.employee_id == employee_id and (month is None or e.month == month)
        ]

    def version(self, employee_id: str, month: str) -> int:
        return self._versions.get((employee_id, month), 0)

    def last_entry(self, employee_id: str) -> TimeEntry | None:
        """Most recently added entry of an employee (for "copy last")."""
        mine = self.for_employee(employee_id)
        return mine[-1] if mine else None

    # --- Mutations ---

    def add(self, entries: Iterable[TimeEntry]) -> list[TimeEntry]:
        """Add new entries; ids must not exist yet."""
        batch = self._prepare(entries)
        clashes = [e.id for e in batch if e.id in self._entries]
        if clashes:
            raise InvalidEntry([f"Entry {i} already exists." for i in clashes])
        self._guard(self._months_of(batch))
        for e in batch:
            self._entries[e.id] = e
        self._bump(self._months_of(batch))
        logger.info("Added %d entries", len(batch))
        return batch

    def upsert(self, entries: Iterable[TimeEntry]) -> list[TimeEntry]:
        """Replace entries with matching ids in place, append the rest."""
        batch = self._prepare(entries)
        touched = self._months_of(batch)
        for e in batch:
            old = self._entries.get(e.id)
            if old is not None:
                touched.add((old.employee_id, old.month))
        self._guard(touched)
        for e in batch:
            self._entries[e.id] = e
        self._bump(touched)
        logger.info("Upserted %d entries", len(batch))
        return batch

    def replace_day(
        self,
        employee_id: str,
        day: str,
        entries: Iterable[TimeEntry],
        *,
        expected_version: int | None = None,
    ) -> list[TimeEntry]:
        """Swap an employee's whole entry set for one day."""
        iso = parse_iso_date(day).isoformat()
        month = month_key(iso)
        batch = self._prepare(entries)
        strays = [e.id for e in batch if e.employee_id != employee_id or e.date != iso]
        if strays:
            raise InvalidEntry([f"Entry {i} does not belong to {employee_id} on {iso}." for i in strays])
        self._guard({(employee_id, month)})
        current = self.version(employee_id, month)
        if expected_version is not None and expected_version != current:
            raise StaleVersion(expected_version, current)
        for entry_id in [
            e.id for e in self._entries.values() if e.employee_id == employee_id and e.date == iso
        ]:
            del self._entries[entry_id]
        for e in batch:
            self._entries[e.id] = e
        self._bump({(employee_id, month)})
        logger.info("Replaced %s for %s with %d entries", iso, employee_id, len(batch))
        return batch

    def delete(self, entry_id: str) -> TimeEntry:
        entry = self._entries.get(entry_id)
        if entry is None:
            raise KeyError(entry_id)
        self._guard({(entry.employee_id, entry.month)})
        del self._entries[entry_id]
        self._bump({(entry.employee_id, entry.month)})
        logger.info("Deleted entry %s", entry_id)
        return entry

    # --- Internal helpers ---

    def _prepare(self, entries: Iterable[TimeEntry]) -> list[TimeEntry]:
        batch = [ensure_valid(e) for e in entries]
        ids = [e.id for e in batch]
        if len(set(ids)) != len(ids):
            raise InvalidEntry(["Duplicate entry ids in one request."])
        return batch

    @staticmethod
    def _months_of(entries: Iterable[TimeEntry]) -> set[tuple[str, str]]:
        return {(e.employee_id, e.month) for e in entries}

    def _guard(self, months: Iterable[tuple[str, str]]) -> None:
        for employee_id, month in sorted(months):
            self.status_book.ensure_editable(employee_id, month)

    def _bump(self, months: Iterable[tuple[str, str]]) -> None:
        for key in months:
            self._versions[key] += 1
