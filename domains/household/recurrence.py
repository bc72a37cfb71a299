"""Recurrence engine - computes the next due date of a completed task.

Rules are stored as JSON on the task (camelCase keys, as written by the web
client) and are turned into one of two tagged variants at the boundary:

    {"mode": "by_date", "day": 15}                          -> ByDateRule
    {"mode": "by_weekday", "weekday": 1, "weekOfMonth": -1} -> ByWeekdayRule

Both variants may carry "month" (yearly anchor) or "startMonth"
(seasonal/half-year anchor). A rule that cannot be parsed is logged and
ignored so recurrence keeps progressing on the plain interval.
"""

import json
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Optional, Union
from zoneinfo import ZoneInfo

from logger import logger
from .calendar_math import (
    add_months,
    clamp_day_of_month,
    household_zone,
    nth_weekday_of_month,
    to_local_date,
)
from .config import MONTH_INTERVALS, SKIP_FORWARD_LIMIT
from .errors import CorruptRuleError
from .types import Recurrence

BY_DATE = "by_date"
BY_WEEKDAY = "by_weekday"
WEEKS_OF_MONTH = (1, 2, 3, 4, -1)


@dataclass(frozen=True)
class ByDateRule:
    """Land on a fixed day of the month (clamped to the month length)."""
    day: Optional[int] = None
    month: Optional[int] = None
    start_month: Optional[int] = None

    mode = BY_DATE

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"mode": self.mode}
        if self.day is not None:
            data["day"] = self.day
        return _with_anchors(data, self)


@dataclass(frozen=True)
class ByWeekdayRule:
    """Land on the nth weekday of the month (-1 = last)."""
    weekday: int
    week_of_month: int = 1
    month: Optional[int] = None
    start_month: Optional[int] = None

    mode = BY_WEEKDAY

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            "mode": self.mode,
            "weekday": self.weekday,
            "weekOfMonth": self.week_of_month,
        }
        return _with_anchors(data, self)


RecurrenceRule = Union[ByDateRule, ByWeekdayRule]


def _with_anchors(data: dict, rule: RecurrenceRule) -> dict:
    if rule.month is not None:
        data["month"] = rule.month
    if rule.start_month is not None:
        data["startMonth"] = rule.start_month
    return data


def _int_field(data: dict, key: str, low: int, high: int, required: bool = False) -> Optional[int]:
    """Read an optional integer field, accepting numeric strings from the client."""
    value = data.get(key)
    if value is None or value == "":
        if required:
            raise CorruptRuleError(f"'{key}' is required")
        return None
    if isinstance(value, bool):
        raise CorruptRuleError(f"'{key}' must be a number, got {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise CorruptRuleError(f"'{key}' must be a number, got {value!r}") from None
    if not low <= number <= high:
        raise CorruptRuleError(f"'{key}' out of range: {number}")
    return number


def rule_from_mapping(data: Any) -> RecurrenceRule:
    """Validate a decoded rule payload.

    Raises:
        CorruptRuleError: if the payload is not a valid rule
    """
    if not isinstance(data, dict):
        raise CorruptRuleError(f"rule must be an object, got {type(data).__name__}")

    mode = data.get("mode") or BY_DATE
    month = _int_field(data, "month", 1, 12)
    start_month = _int_field(data, "startMonth", 1, 12)

    if mode == BY_DATE:
        return ByDateRule(
            day=_int_field(data, "day", 1, 31),
            month=month,
            start_month=start_month,
        )

    if mode == BY_WEEKDAY:
        week_of_month = _int_field(data, "weekOfMonth", -1, 5)
        if week_of_month is None:
            week_of_month = 1
        if week_of_month not in WEEKS_OF_MONTH:
            raise CorruptRuleError(f"'weekOfMonth' must be one of {WEEKS_OF_MONTH}, got {week_of_month}")
        return ByWeekdayRule(
            weekday=_int_field(data, "weekday", 1, 7, required=True),
            week_of_month=week_of_month,
            month=month,
            start_month=start_month,
        )

    raise CorruptRuleError(f"unknown rule mode {mode!r}")


def parse_recurrence_rule(raw: Any) -> Optional[RecurrenceRule]:
    """Decode a stored rule, returning None when absent or corrupt.

    Corrupt rules are logged with the CorruptRuleError that rejected them and
    then treated as "no rule".
    """
    if raw is None or raw == "":
        return None
    if isinstance(raw, (ByDateRule, ByWeekdayRule)):
        return raw

    try:
        data = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
        if data is None:
            return None
        return rule_from_mapping(data)
    except json.JSONDecodeError as e:
        logger.warning(f"Ignoring corrupt recurrence rule {raw!r}: {CorruptRuleError(str(e))}")
    except CorruptRuleError as e:
        logger.warning(f"Ignoring corrupt recurrence rule {raw!r}: {e}")
    return None


def serialize_rule(rule: Optional[RecurrenceRule]) -> Optional[str]:
    """Encode a rule for storage."""
    if rule is None:
        return None
    return json.dumps(rule.to_dict())


def _target_month(current: date, recurrence: Recurrence, months: int, rule: RecurrenceRule) -> tuple[int, int]:
    """Year and month the next occurrence falls in."""
    if recurrence is Recurrence.YEARLY and rule.month:
        return current.year + 1, rule.month

    index = current.year * 12 + (current.month - 1)
    if recurrence in (Recurrence.SEASONAL, Recurrence.HALF_YEAR) and rule.start_month:
        # first cadence month (start_month + k * months) strictly after current
        since_cadence = (index - (rule.start_month - 1)) % months
        target = index + (months - since_cadence)
    else:
        target = index + months

    year, month_index = divmod(target, 12)
    return year, month_index + 1


def _step(current: date, recurrence: Recurrence, rule: Optional[RecurrenceRule]) -> date:
    """Advance by exactly one interval."""
    if recurrence is Recurrence.DAILY:
        return current + timedelta(days=1)
    if recurrence is Recurrence.WEEKLY:
        return current + timedelta(weeks=1)

    months = MONTH_INTERVALS[recurrence.value]
    if rule is None:
        return add_months(current, months)

    year, month = _target_month(current, recurrence, months, rule)
    if isinstance(rule, ByWeekdayRule):
        return nth_weekday_of_month(year, month, rule.weekday, rule.week_of_month)
    return clamp_day_of_month(year, month, rule.day or current.day)


def advance(
    from_date,
    recurrence: Union[Recurrence, str],
    rule: Any = None,
    tz: Union[ZoneInfo, str, None] = None,
    not_before=None,
) -> date:
    """Compute the next due date after from_date.

    Args:
        from_date: Current due date (date, ISO string or datetime)
        recurrence: Recurrence class of the task
        rule: Optional rule (variant, mapping or stored JSON)
        tz: Household zone, used to localise datetime arguments
        not_before: Actual completion date; the result is strictly after it

    Returns:
        The next due date

    Raises:
        ValueError: for "once" tasks, which are deactivated instead
    """
    recurrence = Recurrence(recurrence)
    if recurrence is Recurrence.ONCE:
        raise ValueError("one-off tasks are deactivated on completion, not advanced")

    zone = household_zone(tz) if isinstance(tz, str) else tz
    start = to_local_date(from_date, zone)
    parsed_rule = parse_recurrence_rule(rule)

    candidate = _step(start, recurrence, parsed_rule)
    if not_before is None:
        return candidate

    limit = to_local_date(not_before, zone)
    steps = 0
    while candidate <= limit:
        if steps >= SKIP_FORWARD_LIMIT:
            logger.warning(
                f"Skip-forward limit ({SKIP_FORWARD_LIMIT}) hit advancing {start} "
                f"({recurrence.value}, rule={parsed_rule}) past {limit}; returning {candidate}"
            )
            break
        candidate = _step(candidate, recurrence, parsed_rule)
        steps += 1

    return candidate
