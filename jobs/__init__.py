"""Standalone scheduled jobs."""

from .household_reminders import register_household_reminders

__all__ = [
    "register_household_reminders",
]
