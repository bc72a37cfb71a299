"""Reminder scheduler - registers the daily sweeps with APScheduler.

Sweeps fire at local wall-clock times of each household, not of the server.
For every distinct household zone there is one cron job per sweep, e.g.

    morning:Europe/Zurich   07:00 Europe/Zurich
    evening:Europe/Zurich   20:00 Europe/Zurich
    penalty:America/Denver  21:00 America/Denver

An interval job re-reads the zones so households created later get their
jobs, and zones nobody lives in any more lose them.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from logger import logger
from .. import store
from ..calendar_math import household_zone
from ..config import (
    EVENING_HOUR,
    MISFIRE_GRACE_SECONDS,
    MORNING_HOUR,
    PENALTY_HOUR,
    SWEEP_MINUTE,
    TIMEZONE_POLL_SECONDS,
)
from ..types import ReminderKind
from .gate import NotificationGate
from .push import PushDispatcher
from .sweeps import SWEEPS, SweepReport

ZONE_SYNC_JOB_ID = "household_timezone_sync"


@dataclass
class ScheduledSweep:
    """Local time a sweep fires at."""
    kind: ReminderKind
    hour: int
    minute: int = SWEEP_MINUTE


SCHEDULES = [
    ScheduledSweep(ReminderKind.MORNING, MORNING_HOUR),
    ScheduledSweep(ReminderKind.EVENING, EVENING_HOUR),
    ScheduledSweep(ReminderKind.PENALTY, PENALTY_HOUR),
]


class ReminderScheduler:
    """Owns the sweep jobs on an AsyncIOScheduler."""

    def __init__(
        self,
        scheduler: AsyncIOScheduler,
        dispatcher: Optional[PushDispatcher] = None,
        gate: Optional[NotificationGate] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize scheduler.

        Args:
            scheduler: APScheduler instance (started by the caller)
            dispatcher: Push dispatcher used by all sweeps
            gate: Idempotency gate shared by all sweeps
            clock: Source of the current instant, injectable for tests
        """
        self.scheduler = scheduler
        self.dispatcher = dispatcher or PushDispatcher()
        self.gate = gate or NotificationGate()
        self.clock = clock or (lambda: datetime.now(timezone.utc))

        self._zones: set[str] = set()
        self._running: set[asyncio.Task] = set()

    @staticmethod
    def job_id(kind: ReminderKind, zone: str) -> str:
        return f"{kind.value}:{zone}"

    @property
    def zones(self) -> set[str]:
        return set(self._zones)

    def register(self) -> None:
        """Add the zone sync job; it runs once right away, then periodically."""
        self.scheduler.add_job(
            self.sync_timezones,
            IntervalTrigger(seconds=TIMEZONE_POLL_SECONDS),
            id=ZONE_SYNC_JOB_ID,
            name="reminders:timezone-sync",
            next_run_time=datetime.now(timezone.utc),
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )

    async def sync_timezones(self) -> set[str]:
        """Make sure every household zone has its three sweep jobs.

        Returns:
            The set of zones with registered jobs
        """
        wanted = {household_zone(name).key for name in store.get_timezones()}

        for zone in sorted(wanted - self._zones):
            self._add_zone(zone)
        for zone in sorted(self._zones - wanted):
            self._remove_zone(zone)

        self._zones = wanted
        return self.zones

    def _add_zone(self, zone: str) -> None:
        for sweep in SCHEDULES:
            self.scheduler.add_job(
                self.run_sweep,
                CronTrigger(hour=sweep.hour, minute=sweep.minute, timezone=zone),
                args=[sweep.kind, zone],
                id=self.job_id(sweep.kind, zone),
                name=f"reminders:{sweep.kind.value}:{zone}",
                max_instances=1,  # a sweep never overlaps itself
                coalesce=True,
                misfire_grace_time=MISFIRE_GRACE_SECONDS,
                replace_existing=True,
            )
        logger.info(f"Registered reminder sweeps for {zone}")

    def _remove_zone(self, zone: str) -> None:
        for sweep in SCHEDULES:
            job_id = self.job_id(sweep.kind, zone)
            if self.scheduler.get_job(job_id):
                self.scheduler.remove_job(job_id)
        logger.info(f"Removed reminder sweeps for {zone}")

    async def run_sweep(self, kind: ReminderKind, zone: Optional[str] = None) -> SweepReport:
        """Run one sweep now, for one zone or (zone=None) all households."""
        kind = ReminderKind(kind)
        task = asyncio.current_task()
        if task is not None:
            self._running.add(task)
        try:
            return await SWEEPS[kind](
                self.dispatcher,
                self.gate,
                now=self.clock(),
                timezones={zone} if zone else None,
            )
        finally:
            if task is not None:
                self._running.discard(task)

    async def shutdown(self) -> None:
        """Stop firing new sweeps and let the ones in flight finish.

        Shutting down the AsyncIOExecutor cancels its running job tasks, so
        sweeps drain while the scheduler is only paused.
        """
        running = self.scheduler.running
        if running:
            self.scheduler.pause()

        current = asyncio.current_task()
        in_flight = [task for task in self._running if task is not current]
        if in_flight:
            logger.info(f"Waiting for {len(in_flight)} reminder sweep(s) to finish")
            await asyncio.gather(*in_flight, return_exceptions=True)

        if running:
            self.scheduler.shutdown(wait=False)
