"""
Scoring periods - ISO weeks encoded as "YYYY-WW".

Week 1 is the ISO week containing the year's first Thursday, so the
period of a date near New Year can belong to the neighbouring year.
"""

import re
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional, Tuple

PERIOD_PATTERN = re.compile(r"^(\d{4})-(\d{1,2})$")


class InvalidPeriodError(ValueError):
    """Raised when a period code is malformed or names a week that does not exist."""


def format_period(iso_year: int, iso_week: int) -> str:
    return f"{iso_year}-{iso_week:02d}"


def current_period(now: Optional[datetime] = None, tz: tzinfo = timezone.utc) -> str:
    """ISO week containing `now` (default: current time), seen from `tz`."""
    moment = now or datetime.now(tz)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    iso_year, iso_week, _ = moment.astimezone(tz).isocalendar()
    return format_period(iso_year, iso_week)


def parse_period(period: str) -> Tuple[int, int]:
    match = PERIOD_PATTERN.match(period.strip()) if period else None
    if not match:
        raise InvalidPeriodError(f"Invalid period '{period}', expected YYYY-WW")

    year, week = int(match.group(1)), int(match.group(2))
    try:
        datetime.fromisocalendar(year, week, 1)
    except ValueError as exc:
        raise InvalidPeriodError(f"Week {week} does not exist in ISO year {year}") from exc
    return year, week


def normalize_period(period: str) -> str:
    """Canonical two-digit form of a period code, e.g. "2026-7" -> "2026-07"."""
    return format_period(*parse_period(period))


def period_bounds(period: str, tz: tzinfo = timezone.utc) -> Tuple[datetime, datetime]:
    """
    Inclusive boundaries of a period.

    Returns:
        (Monday 00:00:00, Sunday 23:59:59.999999) as aware datetimes in `tz`
    """
    year, week = parse_period(period)
    monday = datetime.fromisocalendar(year, week, 1)
    start = monday.replace(tzinfo=tz)
    end = (monday + timedelta(days=7) - timedelta(microseconds=1)).replace(tzinfo=tz)
    return start, end


def period_due_at(period: str, tz: tzinfo = timezone.utc) -> datetime:
    """Weekly tasks are due at the end of their period."""
    return period_bounds(period, tz)[1]
