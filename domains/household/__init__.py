"""Household chores domain - recurrence, reminders and task actions."""

from .actions import (
    complete_task,
    nudge_task,
    public_key,
    push_status,
    save_push_subscription,
    send_test_push,
    transfer_task,
)
from .errors import CorruptRuleError, HouseholdError, NotFoundError, TransferError
from .recurrence import ByDateRule, ByWeekdayRule, advance, parse_recurrence_rule
from .types import Household, Member, PushSubscription, Recurrence, ReminderKind, Task

__all__ = [
    "complete_task",
    "nudge_task",
    "public_key",
    "push_status",
    "save_push_subscription",
    "send_test_push",
    "transfer_task",
    "CorruptRuleError",
    "HouseholdError",
    "NotFoundError",
    "TransferError",
    "ByDateRule",
    "ByWeekdayRule",
    "advance",
    "parse_recurrence_rule",
    "Household",
    "Member",
    "PushSubscription",
    "Recurrence",
    "ReminderKind",
    "Task",
]
