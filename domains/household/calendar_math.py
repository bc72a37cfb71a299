"""Calendar arithmetic for due dates.

Everything here works on plain calendar dates. The household zone only matters
when an instant is turned into "today", which is what local_today() is for.
"""

import calendar
from datetime import date, datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil.relativedelta import relativedelta

from logger import logger
from .config import DEFAULT_TIMEZONE


def days_in_month(year: int, month: int) -> int:
    """Number of days in the given month (leap years included)."""
    return calendar.monthrange(year, month)[1]


def clamp_day_of_month(year: int, month: int, day: int) -> date:
    """Build a date with day capped to the month's valid range.

    clamp_day_of_month(2023, 2, 31) -> 2023-02-28
    """
    day = max(1, min(day, days_in_month(year, month)))
    return date(year, month, day)


def nth_weekday_of_month(year: int, month: int, weekday: int, nth: int) -> date:
    """Date of the nth occurrence of weekday (1=Mon..7=Sun) in a month.

    nth=-1 means the last occurrence. A 5th occurrence that does not exist
    is capped to the last one that does.
    """
    if nth == -1:
        current = date(year, month, days_in_month(year, month))
        while current.isoweekday() != weekday:
            current -= timedelta(days=1)
        return current

    current = date(year, month, 1)
    while current.isoweekday() != weekday:
        current += timedelta(days=1)

    current += timedelta(weeks=max(nth, 1) - 1)
    if current.month != month:
        current -= timedelta(weeks=1)
    return current


def add_months(day: date, months: int) -> date:
    """Add whole months, clamping to month end (Jan 31 + 1 month = Feb 28/29)."""
    return day + relativedelta(months=months)


def household_zone(name: Optional[str]) -> ZoneInfo:
    """Resolve a household's IANA zone, falling back to the default zone."""
    if name:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(f"Unknown household timezone '{name}', using {DEFAULT_TIMEZONE}")
    return ZoneInfo(DEFAULT_TIMEZONE)


def local_today(zone: ZoneInfo, now: Optional[datetime] = None) -> date:
    """Calendar date of instant `now` in `zone`.

    Naive instants are taken to be UTC.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(zone).date()


def to_local_date(value, zone: Optional[ZoneInfo] = None) -> date:
    """Coerce a date, ISO string or datetime to a calendar date.

    Aware datetimes are converted into `zone` first so a completion at
    23:30 UTC lands on the household's local day.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None and zone is not None:
            return value.astimezone(zone).date()
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if len(text) > 10:
            return to_local_date(datetime.fromisoformat(text.replace("Z", "+00:00")), zone)
        return date.fromisoformat(text)
    raise TypeError(f"Cannot interpret {value!r} as a date")
