from smartwork.backend.utils import describe_hours_delta, format_hours, get_full_day_hours


def test_describe_hours_delta_full_day():
    assert describe_hours_delta(8.0, full_day=8.0) is None


def test_describe_hours_delta_short_and_long():
    assert describe_hours_delta(6.5, full_day=8.0) == "6.5h reported, 1.5h short of 8h"
    assert describe_hours_delta(8.5, full_day=8.0) == "8.5h reported, +0.5h over 8h"
    assert describe_hours_delta(6, full_day=7.5) == "6h reported, 1.5h short of 7.5h"


def test_format_hours_strips_trailing_zeros():
    assert format_hours(8.0) == "8"
    assert format_hours(7.5) == "7.5"
    assert format_hours(7.25) == "7.25"


def test_full_day_hours_from_env(monkeypatch):
    monkeypatch.setenv("TIMESHEET_FULL_DAY_HOURS", "7.5")
    assert get_full_day_hours() == 7.5
    assert describe_hours_delta(7.5) is None
    monkeypatch.setenv("TIMESHEET_FULL_DAY_HOURS", "abc")
    assert get_full_day_hours() == 8.0
    monkeypatch.setenv("TIMESHEET_FULL_DAY_HOURS", "-1")
    assert get_full_day_hours() == 8.0
