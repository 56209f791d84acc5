"""
Calendar arithmetic for the rollup tiers.

Weeks are ISO-8601 (Monday start, week 1 holds the year's first Thursday).
Every read and write path derives periods through this module so that a
date always lands in the same week and month.
"""
from calendar import monthrange
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from ..exceptions import InvalidPeriodError


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from the store."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_local_date(value: datetime, tz: str) -> date:
    """Calendar date of an instant in the given zone."""
    return ensure_utc(value).astimezone(ZoneInfo(tz)).date()


def local_day_bounds_utc(day: date, tz: str) -> Tuple[datetime, datetime]:
    """
    UTC half-open interval [start, end) covering one local calendar date.
    """
    zone = ZoneInfo(tz)
    start = datetime.combine(day, time.min, tzinfo=zone)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=zone)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def local_today(tz: str, now: Optional[datetime] = None) -> date:
    now = now or datetime.now(timezone.utc)
    return ensure_utc(now).astimezone(ZoneInfo(tz)).date()


# --- ISO weeks ---

def iso_week_of(day: date) -> Tuple[int, int]:
    """(ISO year, ISO week) containing the date."""
    iso = day.isocalendar()
    return iso[0], iso[1]


def weeks_in_year(year: int) -> int:
    # Dec 28 always falls in the last ISO week of its year
    return date(year, 12, 28).isocalendar()[1]


def validate_week(year: int, week: int) -> None:
    if year < 1 or year > 9999:
        raise InvalidPeriodError(f"{year}-W{week:02d}", "year out of range")
    if week < 1 or week > weeks_in_year(year):
        raise InvalidPeriodError(
            f"{year}-W{week:02d}",
            f"ISO year {year} has {weeks_in_year(year)} weeks",
        )


def week_bounds(year: int, week: int) -> Tuple[date, date]:
    """Monday and Sunday of an ISO week."""
    validate_week(year, week)
    monday = date.fromisocalendar(year, week, 1)
    return monday, monday + timedelta(days=6)


def month_of_week(year: int, week: int) -> Tuple[int, int]:
    """
    Calendar (year, month) an ISO week belongs to.

    A week belongs to the month holding its Monday. Weeks that straddle
    a month boundary count toward the month they start in.
    """
    validate_week(year, week)
    monday = date.fromisocalendar(year, week, 1)
    return monday.year, monday.month


def previous_iso_week(day: date) -> Tuple[int, int]:
    """The ISO week before the one containing `day`."""
    return iso_week_of(day - timedelta(days=7))


# --- months ---

def validate_month(year: int, month: int) -> None:
    if year < 1 or year > 9999 or month < 1 or month > 12:
        raise InvalidPeriodError(f"{year}-{month:02d}", "month must be 1-12")


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    """First and last date of a calendar month."""
    validate_month(year, month)
    return date(year, month, 1), date(year, month, monthrange(year, month)[1])


def previous_month(day: date) -> Tuple[int, int]:
    first = day.replace(day=1)
    last_of_previous = first - timedelta(days=1)
    return last_of_previous.year, last_of_previous.month


def yesterday(day: date) -> date:
    return day - timedelta(days=1)
