"""
Tests for date utility functions in utils/date.py

Tests pure functions with boundary logic:
- is_birthday(): Month/day match ignoring year
- years_of_service(): Whole years with the not-yet-reached adjustment
- qualifying_anniversary_years(): Milestone allow-list
- evaluate_anniversary(): Birthday precedence
- get_local_today() / get_notification_target_date(): Timezone day boundaries
- parse_iso_date() / date_to_words(): Parsing and formatting
"""

from datetime import date, datetime, timezone

import pytest

from storage.employees import Employee
from storage.responses import EventKind
from utils.date import (
    date_to_words,
    evaluate_anniversary,
    get_local_today,
    get_notification_target_date,
    is_birthday,
    parse_iso_date,
    parse_optional_date,
    qualifying_anniversary_years,
    years_of_service,
)


class TestIsBirthday:
    """Tests for is_birthday() function"""

    def test_same_month_day_any_year(self):
        """Year is ignored"""
        assert is_birthday(date(1990, 3, 10), date(2024, 3, 10)) is True
        assert is_birthday(date(1990, 3, 10), date(2031, 3, 10)) is True

    def test_different_day(self):
        assert is_birthday(date(1990, 3, 10), date(2024, 3, 11)) is False

    def test_none_inputs(self):
        """Any None input yields False"""
        assert is_birthday(None, date(2024, 3, 10)) is False
        assert is_birthday(date(1990, 3, 10), None) is False


class TestYearsOfService:
    """Tests for years_of_service() function"""

    def test_day_before_anniversary(self):
        """Anniversary not yet reached in the target year"""
        assert years_of_service(date(2020, 3, 10), date(2023, 3, 9)) == 2

    def test_on_anniversary(self):
        assert years_of_service(date(2020, 3, 10), date(2023, 3, 10)) == 3

    def test_later_month(self):
        assert years_of_service(date(2020, 3, 10), date(2023, 12, 1)) == 3


class TestQualifyingAnniversaryYears:
    """Tests for qualifying_anniversary_years() function"""

    def test_non_milestone_year(self):
        """Two years is not in the default 1/3/5/10 list"""
        assert qualifying_anniversary_years(date(2021, 6, 1), date(2023, 6, 1)) is None

    def test_milestone_year(self):
        assert qualifying_anniversary_years(date(2020, 6, 1), date(2023, 6, 1)) == 3

    def test_first_anniversary(self):
        assert qualifying_anniversary_years(date(2023, 6, 1), date(2024, 6, 1)) == 1

    def test_wrong_day(self):
        assert qualifying_anniversary_years(date(2020, 6, 1), date(2023, 6, 2)) is None

    def test_custom_milestones(self):
        assert qualifying_anniversary_years(date(2021, 6, 1), date(2023, 6, 1), {2}) == 2

    def test_missing_hire_date(self):
        assert qualifying_anniversary_years(None, date(2023, 6, 1)) is None


class TestEvaluateAnniversary:
    """Tests for evaluate_anniversary() function"""

    def test_birthday(self):
        employee = Employee("emp_1", "Ada", birth_date=date(1990, 3, 10))
        assert evaluate_anniversary(employee, date(2024, 3, 10)) == (EventKind.BIRTHDAY, None)

    def test_anniversary(self):
        employee = Employee("emp_1", "Ada", hire_date=date(2019, 3, 10))
        assert evaluate_anniversary(employee, date(2024, 3, 10)) == (EventKind.ANNIVERSARY, 5)

    def test_birthday_takes_precedence(self):
        """Only the birthday fires when both dates share a month/day"""
        employee = Employee(
            "emp_1", "Ada", birth_date=date(1990, 3, 10), hire_date=date(2021, 3, 10)
        )
        assert evaluate_anniversary(employee, date(2024, 3, 10)) == (EventKind.BIRTHDAY, None)

    def test_nothing_to_celebrate(self):
        employee = Employee("emp_1", "Ada", birth_date=date(1990, 1, 1))
        assert evaluate_anniversary(employee, date(2024, 3, 10)) is None


class TestDayBoundaries:
    """Tests for get_local_today() and get_notification_target_date()"""

    def test_target_is_tomorrow(self, reference_date):
        assert get_notification_target_date(reference_date) == date(2024, 3, 10)

    def test_naive_moment_treated_as_utc(self):
        assert get_local_today(datetime(2024, 3, 9, 23, 30)) == date(2024, 3, 9)

    def test_configured_timezone_shifts_day(self, monkeypatch):
        """23:30 UTC is already the next day in Zurich"""
        monkeypatch.setattr("utils.date.TIMEZONE", "Europe/Zurich")
        moment = datetime(2024, 3, 9, 23, 30, tzinfo=timezone.utc)
        assert get_local_today(moment) == date(2024, 3, 10)
        assert get_notification_target_date(moment) == date(2024, 3, 11)


class TestParsing:
    """Tests for parse_iso_date(), parse_optional_date() and date_to_words()"""

    def test_accepts_dash_and_slash(self):
        assert parse_iso_date("2024-03-10") == date(2024, 3, 10)
        assert parse_iso_date("2024/03/10") == date(2024, 3, 10)

    def test_rejects_impossible_date(self):
        with pytest.raises(ValueError):
            parse_iso_date("2024-02-30")

    def test_optional_date_tolerates_garbage(self):
        assert parse_optional_date(None) is None
        assert parse_optional_date("not a date") is None
        assert parse_optional_date("2024-03-10T08:00:00Z") == date(2024, 3, 10)

    def test_date_to_words(self):
        assert date_to_words(date(2024, 5, 1)) == "1st of May"
        assert date_to_words(date(2024, 5, 12)) == "12th of May"
        assert date_to_words(date(2024, 5, 23)) == "23rd of May"
