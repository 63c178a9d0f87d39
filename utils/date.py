"""
Date and anniversary utilities for MilestoneBot.

Pure anniversary evaluation (birthdays, hire-date milestones, years of service)
plus the day-boundary helpers the sweeps use to decide what "today" and
"tomorrow" mean in the configured timezone.

Key functions: is_birthday(), years_of_service(), qualifying_anniversary_years(),
evaluate_anniversary(), get_local_today(), get_notification_target_date().
"""

from datetime import date, datetime, timedelta, timezone
from calendar import month_name
from typing import Optional, Tuple

import pytz

from config import (
    ISO_DATE_FORMAT,
    MILESTONE_YEARS,
    SLASH_DATE_FORMAT,
    TIMEZONE,
    get_logger,
)
from storage.responses import EventKind

logger = get_logger("date")


# =============================================================================
# Anniversary Evaluation
# =============================================================================


def is_birthday(birth_date: Optional[date], target_date: Optional[date]) -> bool:
    """
    Check whether target_date is the birthday for birth_date (year ignored).

    Any None input yields False.
    """
    if birth_date is None or target_date is None:
        return False
    return birth_date.month == target_date.month and birth_date.day == target_date.day


def years_of_service(hire_date: date, target_date: date) -> int:
    """
    Whole years between hire_date and target_date.

    The year difference is reduced by one when the anniversary has not yet
    occurred in target_date's year.

    Args:
        hire_date: First working day
        target_date: Date to measure at

    Returns:
        Completed years of service
    """
    years = target_date.year - hire_date.year
    if (target_date.month, target_date.day) < (hire_date.month, hire_date.day):
        years -= 1
    return years


def qualifying_anniversary_years(
    hire_date: Optional[date], target_date: Optional[date], milestone_years=None
) -> Optional[int]:
    """
    Return the years of service if target_date is a milestone hire anniversary.

    Args:
        hire_date: First working day
        target_date: Candidate anniversary date
        milestone_years: Allowed year counts (defaults to MILESTONE_YEARS)

    Returns:
        Years of service when month/day match and the count is a milestone, else None
    """
    if hire_date is None or target_date is None:
        return None
    if milestone_years is None:
        milestone_years = MILESTONE_YEARS

    if (hire_date.month, hire_date.day) != (target_date.month, target_date.day):
        return None

    years = years_of_service(hire_date, target_date)
    if years in milestone_years:
        return years
    return None


def evaluate_anniversary(
    employee, target_date: date, milestone_years=None
) -> Optional[Tuple[EventKind, Optional[int]]]:
    """
    Decide which anniversary, if any, an employee has on target_date.

    Birthday is checked first: when birth and hire dates share a month/day,
    only the birthday fires.

    Args:
        employee: Employee with birth_date and hire_date attributes
        target_date: Date to evaluate
        milestone_years: Optional override of the milestone allow-list

    Returns:
        (EventKind.BIRTHDAY, None), (EventKind.ANNIVERSARY, years) or None
    """
    if is_birthday(employee.birth_date, target_date):
        return EventKind.BIRTHDAY, None

    years = qualifying_anniversary_years(employee.hire_date, target_date, milestone_years)
    if years is not None:
        return EventKind.ANNIVERSARY, years

    return None


# =============================================================================
# Day Boundaries
# =============================================================================


def get_timezone_object(timezone_str):
    """
    Get timezone object from timezone string

    Args:
        timezone_str: Timezone string (e.g., "Asia/Tokyo", "Europe/London")

    Returns:
        pytz timezone object, UTC if empty or invalid
    """
    try:
        if not timezone_str:
            return pytz.UTC
        return pytz.timezone(timezone_str)
    except pytz.UnknownTimeZoneError as e:
        logger.warning(f"TIMEZONE: Invalid timezone '{timezone_str}': {e}")
        return pytz.UTC


def get_local_today(moment: Optional[datetime] = None) -> date:
    """
    Today's calendar date in the configured TIMEZONE.

    Args:
        moment: Optional reference instant; naive values are treated as UTC

    Returns:
        Local date at that instant
    """
    if moment is None:
        moment = datetime.now(timezone.utc)
    elif moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(get_timezone_object(TIMEZONE)).date()


def get_notification_target_date(moment: Optional[datetime] = None) -> date:
    """The local calendar day after today - the date pre-day notifications are about."""
    return get_local_today(moment) + timedelta(days=1)


# =============================================================================
# Parsing and Formatting
# =============================================================================


def parse_iso_date(value) -> date:
    """
    Parse a date in YYYY-MM-DD or YYYY/MM/DD form.

    Args:
        value: String, date or datetime

    Returns:
        date object

    Raises:
        ValueError: If the value is not a real calendar date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Unsupported date value: {value!r}")

    for fmt in (ISO_DATE_FORMAT, SLASH_DATE_FORMAT):
        try:
            return datetime.strptime(value.strip(), fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Invalid date: {value!r}")


def parse_optional_date(value) -> Optional[date]:
    """Like parse_iso_date() but returns None for empty or malformed values."""
    if not value:
        return None
    try:
        return parse_iso_date(value[:10] if isinstance(value, str) else value)
    except ValueError:
        logger.warning(f"DATE: Ignoring malformed date value {value!r}")
        return None


def format_iso_date(value: date) -> str:
    """Format a date as YYYY-MM-DD."""
    return value.strftime(ISO_DATE_FORMAT)


def date_to_words(value: date) -> str:
    """
    Convert a date to words, e.g. date(2024, 5, 1) -> "1st of May"

    Args:
        value: date to describe

    Returns:
        Human-readable day and month
    """
    day = value.day
    if 11 <= day <= 13:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")
    return f"{day}{suffix} of {month_name[value.month]}"
