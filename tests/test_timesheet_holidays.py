import logging
from datetime import date

from smartwork.backend.holidays import HolidayCalendar, easter_date, is_holiday


def test_easter_dates():
    assert easter_date(2016) == date(2016, 3, 27)
    assert easter_date(2024) == date(2024, 3, 31)
    assert easter_date(2025) == date(2025, 4, 20)


def test_default_calendar_movable_feasts():
    assert is_holiday("2024-04-01").name == "Easter Monday"
    assert is_holiday("2024-03-29").name == "Good Friday"
    # Good Friday is a public holiday only from 2016 on.
    assert not is_holiday("2015-04-03").is_holiday
    assert is_holiday("2015-04-06").is_holiday


def test_default_calendar_fixed_dates():
    assert is_holiday("2024-12-24").is_holiday
    assert is_holiday(date(2030, 7, 5)).name == "Saints Cyril and Methodius Day"
    assert not is_holiday("2024-04-02").is_holiday


def test_malformed_input_is_not_a_holiday():
    assert not is_holiday("garbage").is_holiday
    assert not is_holiday("2024-13-01").is_holiday


def test_holidays_for_year_sorted():
    cal = HolidayCalendar()
    days = cal.holidays_for_year(2024)
    assert len(days) == 13
    assert list(days) == sorted(days)
    assert next(iter(days)) == date(2024, 1, 1)
    assert len(cal.holidays_for_year(2015)) == 12


def test_holidays_in_month_and_workdays():
    cal = HolidayCalendar()
    assert cal.holidays_in_month(2024, 5) == {
        date(2024, 5, 1): "Labour Day",
        date(2024, 5, 8): "Liberation Day",
    }
    assert cal.is_workday("2024-04-02")
    assert not cal.is_workday("2024-04-06")
    assert not cal.is_workday("2024-05-01")


def test_custom_rules(caplog):
    with caplog.at_level(logging.WARNING):
        cal = HolidayCalendar(["2024-06-14 | Company Day", "bad line", "12-31 | New Year's Eve", "# comment"])
    assert cal.is_holiday("2024-06-14").name == "Company Day"
    assert not cal.is_holiday("2025-06-14").is_holiday
    assert cal.is_holiday("2025-12-31").is_holiday
    # Only the custom table applies.
    assert not cal.is_holiday("2024-01-01").is_holiday
    assert "bad line" in caplog.text


def test_workdays_in_month_skip_weekends_and_holidays():
    cal = HolidayCalendar()
    april = cal.workdays_in_month(2024, 4)
    assert len(april) == 21
    assert date(2024, 4, 1) not in april
    assert len(cal.workdays_in_month(2024, 5)) == 21
    assert len(HolidayCalendar([]).workdays_in_month(2024, 5)) == 23
