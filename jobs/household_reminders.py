"""Household reminder jobs.

Morning (07:00), evening (20:00) and penalty (21:00) push sweeps, at local
time in every household zone.
"""

from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from domains.household.reminders import PushDispatcher, ReminderScheduler
from logger import logger


def register_household_reminders(
    scheduler: AsyncIOScheduler,
    dispatcher: Optional[PushDispatcher] = None,
) -> ReminderScheduler:
    """Register the reminder sweeps with the scheduler.

    Per-zone cron jobs are added by the zone sync job, which runs as soon as
    the scheduler starts.
    """
    reminders = ReminderScheduler(scheduler, dispatcher=dispatcher)
    reminders.register()

    if not reminders.dispatcher.configured:
        logger.warning("VAPID keys not set - reminder sweeps will run without sending pushes")
    logger.info("Registered household reminder jobs (07:00 / 20:00 / 21:00 local)")
    return reminders
