import random

import pytest

from smartwork.backend.aggregation import aggregate
from smartwork.backend.errors import MalformedPeriod
from smartwork.backend.forms import TimeEntry, WorkType
from smartwork.backend.holidays import HolidayCalendar
from smartwork.backend.utils import iter_month_dates
from smartwork.backend.validation import (
    IssueKind,
    Severity,
    count_by_severity,
    has_blocking_issues,
    validate_month,
)


def _work(day: str, hours: float = 8, type: WorkType = WorkType.REGULAR) -> TimeEntry:
    project = "Website Redesign" if type.requires_project else ""
    return TimeEntry("1", day, hours, type, project)


def _full_april(skip: set[str] = frozenset()) -> list[TimeEntry]:
    cal = HolidayCalendar()
    return [
        _work(d.isoformat())
        for d in iter_month_dates(2024, 4)
        if cal.is_workday(d) and d.isoformat() not in skip
    ]


def test_full_month_has_one_missing_day():
    entries = _full_april(skip={"2024-04-15"})
    assert len(entries) == 20
    issues = validate_month(entries, 2024, 4, reference_date="2024-04-30")
    assert len(issues) == 1
    issue = issues[0]
    assert issue.date == "2024-04-15"
    assert issue.kind is IssueKind.MISSING_DAY
    assert issue.severity is Severity.ERROR
    assert has_blocking_issues(issues)
    assert aggregate(entries).total_regular_productive == 160.0


def test_holiday_without_entry_is_not_missing():
    issues = validate_month(_full_april(), "2024", "04", reference_date="2024-04-30")
    assert issues == []


def test_short_day_warning():
    entries = _full_april(skip={"2024-04-02"}) + [_work("2024-04-02", 6)]
    issues = validate_month(entries, 2024, 4, reference_date="2024-04-30")
    assert [i.kind for i in issues] == [IssueKind.INSUFFICIENT_HOURS]
    assert issues[0].delta == 2.0
    assert issues[0].message == "2024-04-02: 6h reported, 2h short of 8h."
    assert not has_blocking_issues(issues)


def test_long_day_warning():
    entries = _full_april(skip={"2024-04-08"}) + [_work("2024-04-08", 10, WorkType.OVERTIME)]
    issues = validate_month(entries, 2024, 4, reference_date="2024-04-30")
    assert [i.kind for i in issues] == [IssueKind.EXCESSIVE_HOURS]
    assert issues[0].delta == 2.0
    assert issues[0].message == "2024-04-08: 10h reported, +2h over 8h."


def test_several_entries_on_one_day_are_summed():
    entries = _full_april(skip={"2024-04-03"}) + [
        _work("2024-04-03", 6),
        _work("2024-04-03", 2, WorkType.DOCTOR),
    ]
    assert validate_month(entries, 2024, 4, reference_date="2024-04-30") == []


def test_weekend_and_holiday_work():
    entries = _full_april() + [_work("2024-04-06", 4), _work("2024-04-01", 4)]
    issues = validate_month(entries, 2024, 4, reference_date="2024-04-30")
    assert [(i.date, i.kind) for i in issues] == [
        ("2024-04-01", IssueKind.WEEKEND_WORK),
        ("2024-04-06", IssueKind.WEEKEND_WORK),
    ]
    assert issues[0].message == "2024-04-01: 4h reported on public holiday (Easter Monday)."
    assert issues[1].message == "2024-04-06: 4h reported on a weekend."
    assert all(i.severity is Severity.WARNING for i in issues)


def test_overtime_and_trips_expected_on_weekends():
    entries = _full_april() + [
        _work("2024-04-06", 4, WorkType.OVERTIME),
        _work("2024-04-07", 8, WorkType.BUSINESS_TRIP),
    ]
    assert validate_month(entries, 2024, 4, reference_date="2024-04-30") == []


def test_absence_on_weekend_flagged_unless_exempt():
    entries = _full_april() + [_work("2024-04-13", 8, WorkType.VACATION)]
    flagged = validate_month(entries, 2024, 4, reference_date="2024-04-30")
    assert [i.kind for i in flagged] == [IssueKind.WEEKEND_WORK]
    exempt = validate_month(
        entries, 2024, 4, reference_date="2024-04-30", exempt_absences_on_non_workdays=True
    )
    assert exempt == []


def test_future_days_are_not_missing():
    issues = validate_month([], 2024, 5, reference_date="2024-05-15")
    # May 1 and May 8 are public holidays.
    assert len(issues) == 9
    assert all(i.kind is IssueKind.MISSING_DAY for i in issues)
    assert max(i.date for i in issues) == "2024-05-15"


def test_future_long_day_still_flagged():
    entries = [_work("2024-05-20", 12), _work("2024-05-21", 4)]
    issues = validate_month(entries, 2024, 5, reference_date="2024-05-15")
    future = [i for i in issues if i.date > "2024-05-15"]
    assert [(i.date, i.kind) for i in future] == [("2024-05-20", IssueKind.EXCESSIVE_HOURS)]


def test_leap_february():
    leap = validate_month([], 2024, 2, reference_date="2024-03-01")
    assert len(leap) == 21
    assert leap[-1].date == "2024-02-29"
    assert len(validate_month([], 2023, 2, reference_date="2023-03-01")) == 20


def test_custom_full_day():
    entries = [_work(d, 7.5) for d in ("2024-02-01", "2024-02-02", "2024-02-05")]
    issues = validate_month(entries, 2024, 2, reference_date="2024-02-05", full_day_hours=7.5)
    assert issues == []


def test_entries_of_other_months_are_ignored():
    entries = _full_april() + [_work("2024-03-30", 5), _work("2024-05-04", 5)]
    assert validate_month(entries, 2024, 4, reference_date="2024-04-30") == []


@pytest.mark.parametrize("year,month", [(2024, 13), (2024, 0), (0, 1), ("abc", 1), (2024, "x")])
def test_malformed_period(year, month):
    with pytest.raises(MalformedPeriod):
        validate_month([], year, month)


def test_malformed_entry_date_raises():
    with pytest.raises(MalformedPeriod):
        validate_month([_work("2024/04/02")], 2024, 4)


def test_result_independent_of_entry_order():
    entries = _full_april(skip={"2024-04-15"}) + [
        _work("2024-04-06", 4),
        _work("2024-04-03", 2, WorkType.OVERTIME),
        _work("2024-04-10", 0.5, WorkType.DOCTOR),
    ]
    expected = validate_month(entries, 2024, 4, reference_date="2024-04-30")
    assert [i.date for i in expected] == sorted(i.date for i in expected)
    rng = random.Random(7)
    for _ in range(10):
        shuffled = entries[:]
        rng.shuffle(shuffled)
        assert validate_month(shuffled, 2024, 4, reference_date="2024-04-30") == expected


def test_count_by_severity():
    issues = validate_month([_work("2024-02-05", 4)], 2024, 2, reference_date="2024-02-06")
    assert count_by_severity(issues) == {"error": 3, "warning": 1}
    assert issues[0].as_dict()["kind"] == "MissingDay"


def test_single_overtime_day():
    entries = [TimeEntry("1", "2024-04-08", 10, WorkType.OVERTIME, "X")]
    issues = validate_month(entries, 2024, 4, reference_date="2024-04-08")
    monday = [i for i in issues if i.date == "2024-04-08"]
    assert [(i.kind, i.delta) for i in monday] == [(IssueKind.EXCESSIVE_HOURS, 2.0)]
    result = aggregate(entries)
    assert result.total_overtime == 10.0
    assert result.total_regular_productive == 0.0
    assert result.by_project["X"].overtime == 10.0
