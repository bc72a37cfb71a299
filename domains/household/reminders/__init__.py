"""Daily push reminders for household tasks.

Three sweeps (morning, evening, penalty) run at local household times via
APScheduler and fan out Web Push notifications.
"""

from .gate import NotificationGate
from .push import DispatchResult, ErrorDetail, PushDispatcher
from .sweeps import (
    SweepReport,
    send_evening_reminders,
    send_morning_reminders,
    send_penalty_reminders,
)
from .scheduler import ReminderScheduler, SCHEDULES

__all__ = [
    "NotificationGate",
    "DispatchResult",
    "ErrorDetail",
    "PushDispatcher",
    "SweepReport",
    "send_morning_reminders",
    "send_evening_reminders",
    "send_penalty_reminders",
    "ReminderScheduler",
    "SCHEDULES",
]
