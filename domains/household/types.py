"""Type definitions for households, members, tasks and push subscriptions."""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional


class Recurrence(str, Enum):
    """Coarse repeat cadence of a task."""
    ONCE = "once"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    SEASONAL = "seasonal"     # every 3 months
    HALF_YEAR = "half_year"   # every 6 months
    YEARLY = "yearly"


class ReminderKind(str, Enum):
    """Which daily sweep a reminder belongs to."""
    MORNING = "morning"   # 07:00, member marker
    EVENING = "evening"   # 20:00, member marker
    PENALTY = "penalty"   # 21:00, task marker


@dataclass
class Household:
    """A household and the zone all of its date math happens in."""
    id: int
    name: str
    timezone: str


@dataclass
class Member:
    """A household member who can be assigned tasks and receive pushes."""
    id: int
    household_id: int
    name: str
    last_daily_push_date: Optional[date] = None
    last_evening_push_date: Optional[date] = None


@dataclass
class Task:
    """A (possibly recurring) household chore."""
    id: int
    household_id: int
    title: str
    recurrence: Recurrence
    due_date: date
    recurrence_rule: Optional[str] = None  # raw stored JSON, parsed on use
    primary_member_id: Optional[int] = None
    secondary_member_id: Optional[int] = None
    transferred_from_member_id: Optional[int] = None
    transferred_at: Optional[str] = None
    active: bool = True
    last_penalty_date: Optional[date] = None
    notes: Optional[str] = None

    def is_assigned_to(self, member_id: int) -> bool:
        return member_id in (self.primary_member_id, self.secondary_member_id)


@dataclass
class PushSubscription:
    """A registered browser push endpoint for one member."""
    id: int
    member_id: int
    subscription: dict  # {"endpoint": ..., "keys": {"p256dh": ..., "auth": ...}}
    created_at: str
