"""Offline natural-language to timesheet parsing.

The AI text service is the primary parser; this heuristic one covers short
lines like "yesterday 4h WEB-001 notes: wireframes" when the service is not
configured. It returns a dictionary suitable for `forms.from_parsed`.
"""

from __future__ import annotations

import re
from datetime import date as _date, datetime, timedelta, tzinfo as _tzinfo
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

# Keyword -> work type label; checked in order, so longer phrases come first.
_TYPE_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("business trip", "Business trip"),
    ("unpaid leave", "Unpaid leave"),
    ("compensatory", "Compensatory leave"),
    ("care leave", "Care leave"),
    ("sick", "Sick day"),
    ("vacation", "Vacation"),
    ("holiday", "Holiday"),
    ("doctor", "Doctor"),
    ("overtime", "Overtime"),
    ("trip", "Business trip"),
    ("60%", "Reduced pay (60%)"),
    ("obstacle", "Other obstacle"),
)

_RELATIVE = ("today", "yesterday", "tomorrow")


def parse_freeform(
    text: str,
    *,
    timezone: str | None = None,
    base_date: str | None = None,
) -> dict[str, Any]:
    """Parse a freeform timesheet line into structured fields.

    Heuristics (simple but practical):
    - Date: first YYYY-MM-DD match, else a relative word (today/yesterday/tomorrow).
    - Hours: first number followed by an hour marker (h/hr/hrs/hour/hours), else
      the first bare number that is not part of the date.
    - Type: first known keyword (sick, vacation, overtime, business trip, ...).
    - Project: "for <project>" up to a "notes:" marker.
    - Description: the remainder after "notes:".

    All fields are optional; missing values are left empty/None for validation to catch.
    """
    s = text.strip()
    if not s:
        return {"date": "", "hours": None, "type": None, "project": None, "description": None}
    low = s.lower()

    # Date.
    date = ""
    date_match = re.search(r"\b(\d{4}-\d{2}-\d{2})\b", s)
    if date_match:
        date = date_match.group(1)
    else:
        for word in _RELATIVE:
            if re.search(rf"\b{word}\b", low):
                date = resolve_date_phrase(word, timezone=timezone, base_date=base_date)
                break

    # Description: capture after explicit marker.
    description: str | None = None
    notes_match = re.search(r"\bnotes:\s*(.+)$", s, flags=re.IGNORECASE)
    if notes_match:
        description = notes_match.group(1).strip()
    s_wo_notes = s[: notes_match.start()].strip() if notes_match else s

    # Project: capture after "for ".
    project: str | None = None
    proj_match = re.search(r"\bfor\s+([^\n]+)$", s_wo_notes, flags=re.IGNORECASE)
    if proj_match:
        project = proj_match.group(1).strip()

    # Hours: prefer a number with an hour marker; never a piece of the date.
    scan = s_wo_notes.replace(date, " ") if date_match else s_wo_notes
    hours: float | None = None
    hours_match = re.search(
        r"(?<![\w.])(\d+(?:[.,]\d+)?)\s*(?:h|hr|hrs|hour|hours)\b", scan, flags=re.IGNORECASE
    ) or re.search(r"(?<![\w.%-])(\d+(?:[.,]\d+)?)(?![\w%-])", scan)
    if hours_match:
        hours = float(hours_match.group(1).replace(",", "."))

    # Type.
    work_type: str | None = None
    for keyword, label in _TYPE_KEYWORDS:
        if re.search(rf"(?<!\w){re.escape(keyword)}(?!\w)", low):
            work_type = label
            break

    return {
        "date": date,
        "hours": hours,
        "type": work_type,
        "project": project if project else None,
        "description": description if description else None,
    }


_MONTHS = {
    "jan": 1,
    "january": 1,
    "feb": 2,
    "february": 2,
    "mar": 3,
    "march": 3,
    "apr": 4,
    "april": 4,
    "may": 5,
    "jun": 6,
    "june": 6,
    "jul": 7,
    "july": 7,
    "aug": 8,
    "august": 8,
    "sep": 9,
    "sept": 9,
    "september": 9,
    "oct": 10,
    "october": 10,
    "nov": 11,
    "november": 11,
    "dec": 12,
    "december": 12,
}

_WEEKDAYS = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}


def resolve_date_phrase(
    phrase: str,
    *,
    timezone: str | None = None,
    base_date: str | None = None,
) -> str:
    """Resolve relative or natural-language dates to ISO YYYY-MM-DD.

    Supported:
    - Relative: today, yesterday, tomorrow.
    - ISO: YYYY-MM-DD (returned as-is if valid).
    - Month/day names: "September 9 2025", "9 September 2025" (commas/ordinals tolerated).
    - Numeric with year: MM/DD/YYYY.
    - Weekday phrases (limited): "this monday", "next tuesday", "last friday".

    Args:
        phrase: The user-provided date phrase.
        timezone: Optional IANA timezone (e.g., "America/Los_Angeles"). Defaults to system tz or UTC.
        base_date: Optional YYYY-MM-DD to anchor relative phrases (useful for tests). Defaults to today.
    """
    s = (phrase or "").strip().lower()
    if not s:
        return ""

    # Timezone: prefer explicit IANA name; otherwise use local tzinfo; fallback to UTC.
    tzinfo: _tzinfo | None = None
    if timezone:
        try:
            tzinfo = ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError):
            tzinfo = None
    if tzinfo is None:
        tzinfo = datetime.now().astimezone().tzinfo
    if tzinfo is None:
        tzinfo = ZoneInfo("UTC")

    # Base date
    today = _parse_iso_date(base_date) or datetime.now(tzinfo).date()

    # ISO
    if _is_iso_date(s):
        return s if _parse_iso_date(s) else ""

    # Relative
    if s in {"today", "todays date", "today's date"}:
        return today.isoformat()
    if s == "yesterday":
        return (today - timedelta(days=1)).isoformat()
    if s == "tomorrow":
        return (today + timedelta(days=1)).isoformat()

    # Month name formats
    mdy = re.search(r"\b([a-zA-Z]+)\s+(\d{1,2})(?:st|nd|rd|th)?\s*,?\s*(\d{4})\b", s)
    if mdy:
        m = _MONTHS.get(mdy.group(1).lower())
        if m:
            return _make_date(int(mdy.group(3)), m, int(mdy.group(2)))

    dmy = re.search(r"\b(\d{1,2})(?:st|nd|rd|th)?\s+([a-zA-Z]+)\s*(\d{4})\b", s)
    if dmy:
        m = _MONTHS.get(dmy.group(2).lower())
        if m:
            return _make_date(int(dmy.group(3)), m, int(dmy.group(1)))

    # Numeric MM/DD/YYYY
    mdy_num = re.search(r"\b(\d{1,2})/(\d{1,2})/(\d{4})\b", s)
    if mdy_num:
        return _make_date(int(mdy_num.group(3)), int(mdy_num.group(1)), int(mdy_num.group(2)))

    # Numeric D.M.YYYY (Czech style, spaces allowed after the dots)
    dmy_num = re.search(r"\b(\d{1,2})\.\s*(\d{1,2})\.\s*(\d{4})\b", s)
    if dmy_num:
        return _make_date(int(dmy_num.group(3)), int(dmy_num.group(2)), int(dmy_num.group(1)))

    # Weekday phrases: this/next/last <weekday>
    wk = re.search(
        r"\b(this|next|last)\s+(monday|tuesday|wednesday|thursday|friday|saturday|sunday)\b", s
    )
    if wk:
        rel, wd = wk.group(1), wk.group(2)
        target = _WEEKDAYS[wd]
        offset = (target - today.weekday()) % 7
        if rel == "this":
            days = offset
        elif rel == "next":
            days = offset + 7
        else:  # last
            days = offset - 7
        return (today + timedelta(days=days)).isoformat()

    # Fallback: no match
    return ""


def _make_date(y: int, m: int, d: int) -> str:
    try:
        return _date(y, m, d).isoformat()
    except ValueError:
        return ""


def _is_iso_date(s: str) -> bool:
    return bool(re.fullmatch(r"\d{4}-\d{2}-\d{2}", s))


def _parse_iso_date(s: str | None) -> _date | None:
    if not s:
        return None
    try:
        return datetime.strptime(s, "%Y-%m-%d").date()
    except ValueError:
        return None
