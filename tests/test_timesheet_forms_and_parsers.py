import pytest

from smartwork.backend.config import Job
from smartwork.backend.errors import InvalidEntry
from smartwork.backend.forms import (
    TimeEntry,
    WorkType,
    expand_range,
    from_dict,
    from_parsed,
    validate,
)
from smartwork.backend.holidays import HolidayCalendar
from smartwork.backend.parsers import parse_freeform

JOBS = [Job(code="WEB-001", name="Website Redesign"), Job(code="INT-202", name="Internal Tool")]


def test_from_dict_and_validate_ok():
    entry = from_dict(
        {
            "employee_id": "1",
            "date": "2025-09-01",
            "hours": 7.5,
            "project": "Website Redesign",
            "description": "Regular shift.",
        }
    )
    assert isinstance(entry, TimeEntry)
    assert entry.type is WorkType.REGULAR
    assert entry.month == "2025-09"
    assert validate(entry) == []


def test_validate_requires_fields():
    entry = from_dict({"employee_id": "", "date": "", "hours": -1})
    problems = validate(entry)
    assert "Employee is required." in problems
    assert "Date is required." in problems
    assert "Hours must not be negative." in problems
    assert "Project is required for Regular work." in problems


def test_validate_bad_date_and_too_many_hours():
    entry = TimeEntry("1", "2025-02-30", 25, WorkType.REGULAR, "Website Redesign")
    problems = validate(entry)
    assert any("2025-02-30" in p for p in problems)
    assert "Hours must not exceed 24 per entry." in problems


def test_absence_must_not_carry_project():
    entry = TimeEntry("1", "2025-09-01", 2, WorkType.DOCTOR, "Website Redesign")
    assert validate(entry) == ["Doctor entries must not carry a project."]


def test_from_dict_clears_project_of_absences():
    entry = from_dict({"employee_id": "1", "date": "2025-09-01", "hours": 8, "type": "vacation", "project": "X"})
    assert entry.type is WorkType.VACATION
    assert entry.project == ""
    assert validate(entry) == []


def test_from_dict_rejects_unknown_type_and_bad_hours():
    with pytest.raises(InvalidEntry) as exc:
        from_dict({"employee_id": "1", "date": "2025-09-01", "hours": "lots", "type": "Nap"})
    assert len(exc.value.problems) == 2


def test_from_dict_keeps_given_id():
    entry = from_dict({"id": "abc", "employee_id": "1", "date": "2025-09-01", "hours": 1, "type": "Doctor"})
    assert entry.id == "abc"


def test_work_type_lookup_and_classification():
    assert WorkType.lookup("sick day") is WorkType.SICK_DAY
    assert WorkType.lookup("OVERTIME") is WorkType.OVERTIME
    assert WorkType.lookup("business_trip") is WorkType.BUSINESS_TRIP
    productive = {t for t in WorkType if t.is_productive}
    assert productive == {WorkType.REGULAR, WorkType.OVERTIME, WorkType.BUSINESS_TRIP}
    assert {t for t in WorkType if t.requires_project} == {WorkType.REGULAR, WorkType.OVERTIME}
    assert WorkType.OVERTIME.expected_on_non_workday
    assert not WorkType.VACATION.expected_on_non_workday


def test_expand_range_skips_weekends_and_holidays():
    template = TimeEntry("1", "2024-04-01", 8, WorkType.VACATION)
    plain = expand_range(template, "2024-04-01", "2024-04-07")
    assert [e.date for e in plain] == [
        "2024-04-01",
        "2024-04-02",
        "2024-04-03",
        "2024-04-04",
        "2024-04-05",
    ]
    # 2024-04-01 is Easter Monday.
    with_calendar = expand_range(template, "2024-04-01", "2024-04-07", HolidayCalendar())
    assert [e.date for e in with_calendar][0] == "2024-04-02"
    assert len(with_calendar) == 4
    assert len({e.id for e in plain}) == 5
    assert template.id not in {e.id for e in plain}


def test_expand_range_invalid_ranges():
    template = TimeEntry("1", "2024-04-01", 8, WorkType.VACATION)
    with pytest.raises(InvalidEntry):
        expand_range(template, "2024-04-05", "2024-04-01")
    with pytest.raises(InvalidEntry):
        expand_range(template, "2024-04-06", "2024-04-07")


def test_from_parsed_matches_jobs_and_fills_defaults():
    entry = from_parsed({"hours": 4, "project": "web-001"}, employee_id="1", reference_date="2024-04-10", jobs=JOBS)
    assert entry.project == "Website Redesign"
    assert entry.date == "2024-04-10"
    assert entry.type is WorkType.REGULAR


def test_from_parsed_project_fallbacks():
    doctor = from_parsed(
        {"hours": 2, "type": "Doctor", "project": "Website Redesign", "date": "2024-04-09"},
        employee_id="1",
        reference_date="2024-04-10",
        jobs=JOBS,
    )
    assert doctor.project == ""
    general = from_parsed({"hours": 3}, employee_id="1", reference_date="2024-04-10", jobs=JOBS)
    assert general.project == "General"
    raw = from_parsed({"hours": 3, "project": "Secret"}, employee_id="1", reference_date="2024-04-10", jobs=JOBS)
    assert raw.project == "Secret"


def test_from_parsed_rejects_invalid_items():
    with pytest.raises(InvalidEntry):
        from_parsed({"hours": 30, "project": "X"}, employee_id="1", reference_date="2024-04-10")
    with pytest.raises(InvalidEntry):
        from_parsed({"hours": 3, "type": "Nap"}, employee_id="1", reference_date="2024-04-10")


def test_parse_freeform_basic():
    text = "2025-09-01 7.5 hours for Website Redesign notes: wireframes"
    data = parse_freeform(text)
    assert data["date"] == "2025-09-01"
    assert data["hours"] == 7.5
    assert data["project"] == "Website Redesign"
    assert data["description"] == "wireframes"
    assert data["type"] is None


def test_parse_freeform_relative_date_and_type():
    data = parse_freeform("yesterday 4h sick", base_date="2025-09-09")
    assert data["date"] == "2025-09-08"
    assert data["hours"] == 4.0
    assert data["type"] == "Sick day"


def test_parse_freeform_does_not_read_hours_from_date():
    data = parse_freeform("2025-09-01 doctor")
    assert data["hours"] is None
    assert data["type"] == "Doctor"
    assert parse_freeform("   ")["hours"] is None


@pytest.mark.parametrize("raw", ["nan", "inf", "-inf", float("nan")])
def test_non_finite_hours_are_rejected(raw):
    entry = from_dict({"employee_id": "1", "date": "2024-04-02", "hours": raw, "project": "Website Redesign"})
    assert validate(entry) == ["Hours must be a number."]


def test_type_keywords_match_whole_words():
    assert parse_freeform("4h for Tripwire")["type"] is None
    assert parse_freeform("4h homesick blues for Internal Tool")["type"] is None
    assert parse_freeform("8h trip to Brno")["type"] == "Business trip"
    assert parse_freeform("8h at 60% pay")["type"] == "Reduced pay (60%)"
