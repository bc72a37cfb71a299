"""Integration tests for reminder job registration and execution."""

import asyncio
from datetime import date, datetime, timezone

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from domains.household.reminders import DispatchResult, PushDispatcher, ReminderScheduler
from domains.household.reminders.scheduler import ZONE_SYNC_JOB_ID
from domains.household.types import ReminderKind
from jobs import register_household_reminders

NOW = datetime(2024, 3, 1, 6, 0, tzinfo=timezone.utc)


def cron_fields(job) -> dict:
    return {field.name: str(field) for field in job.trigger.fields}


class TestRegistration:
    """Job registration on the scheduler."""

    def test_register_adds_zone_sync_job(self, temp_db, recording_dispatcher):
        scheduler = AsyncIOScheduler()

        register_household_reminders(scheduler, dispatcher=recording_dispatcher)

        job_ids = [job.id for job in scheduler.get_jobs()]
        assert job_ids == [ZONE_SYNC_JOB_ID]

    def test_default_dispatcher(self, temp_db, no_vapid):
        reminders = register_household_reminders(AsyncIOScheduler())

        assert reminders.dispatcher.configured is False


class TestZoneSync:
    """One cron job per sweep and household zone."""

    @pytest.mark.asyncio
    async def test_jobs_per_household_zone(self, temp_db, household, recording_dispatcher):
        temp_db.add_household("Familie West", "America/Denver")
        scheduler = AsyncIOScheduler()
        reminders = ReminderScheduler(scheduler, dispatcher=recording_dispatcher)

        zones = await reminders.sync_timezones()

        assert zones == {"Europe/Zurich", "America/Denver"}
        jobs = {job.id: job for job in scheduler.get_jobs()}
        assert set(jobs) == {
            "morning:Europe/Zurich", "evening:Europe/Zurich", "penalty:Europe/Zurich",
            "morning:America/Denver", "evening:America/Denver", "penalty:America/Denver",
        }

        morning = jobs["morning:Europe/Zurich"]
        assert cron_fields(morning)["hour"] == "7"
        assert cron_fields(morning)["minute"] == "0"
        assert str(morning.trigger.timezone) == "Europe/Zurich"
        assert list(morning.args) == [ReminderKind.MORNING, "Europe/Zurich"]
        assert morning.max_instances == 1

        assert cron_fields(jobs["evening:America/Denver"])["hour"] == "20"
        assert cron_fields(jobs["penalty:America/Denver"])["hour"] == "21"

    @pytest.mark.asyncio
    async def test_invalid_zone_maps_to_default(self, temp_db, recording_dispatcher):
        temp_db.add_household("Familie Nirgendwo", "Nowhere/Atlantis")
        reminders = ReminderScheduler(AsyncIOScheduler(), dispatcher=recording_dispatcher)

        assert await reminders.sync_timezones() == {"Europe/Zurich"}

    @pytest.mark.asyncio
    async def test_stale_zone_removed(self, temp_db, household, recording_dispatcher):
        scheduler = AsyncIOScheduler()
        reminders = ReminderScheduler(scheduler, dispatcher=recording_dispatcher)
        await reminders.sync_timezones()

        with temp_db._transaction() as conn:
            conn.execute("UPDATE households SET timezone = 'Asia/Tokyo' WHERE id = ?", (household.id,))
        zones = await reminders.sync_timezones()

        assert zones == {"Asia/Tokyo"}
        assert sorted(job.id for job in scheduler.get_jobs()) == [
            "evening:Asia/Tokyo", "morning:Asia/Tokyo", "penalty:Asia/Tokyo",
        ]

    @pytest.mark.asyncio
    async def test_sync_is_idempotent(self, temp_db, household, recording_dispatcher):
        scheduler = AsyncIOScheduler()
        reminders = ReminderScheduler(scheduler, dispatcher=recording_dispatcher)

        await reminders.sync_timezones()
        await reminders.sync_timezones()

        assert len(scheduler.get_jobs()) == 3


class TestRunSweep:
    """Executing a sweep the way the cron job does."""

    @pytest.mark.asyncio
    async def test_run_sweep_for_zone(self, temp_db, household, recording_dispatcher):
        temp_db.add_task(
            household.id, "Fenster putzen", "weekly", date(2024, 3, 1), primary_member_id=household.anna
        )
        reminders = ReminderScheduler(
            AsyncIOScheduler(), dispatcher=recording_dispatcher, clock=lambda: NOW
        )

        report = await reminders.run_sweep(ReminderKind.MORNING, "Europe/Zurich")

        assert report.kind is ReminderKind.MORNING
        assert report.notified == 1
        assert recording_dispatcher.recipients() == [household.anna]

    @pytest.mark.asyncio
    async def test_run_sweep_other_zone_skips_household(self, temp_db, household, recording_dispatcher):
        temp_db.add_task(
            household.id, "Fenster putzen", "weekly", date(2024, 3, 1), primary_member_id=household.anna
        )
        reminders = ReminderScheduler(
            AsyncIOScheduler(), dispatcher=recording_dispatcher, clock=lambda: NOW
        )

        report = await reminders.run_sweep("morning", "Asia/Tokyo")

        assert report.households == 0
        assert recording_dispatcher.calls == []

    @pytest.mark.asyncio
    async def test_shutdown_without_start(self, temp_db, recording_dispatcher):
        reminders = ReminderScheduler(AsyncIOScheduler(), dispatcher=recording_dispatcher)

        await reminders.shutdown()


class SlowDispatcher(PushDispatcher):
    """Dispatcher whose delivery takes a while, to be caught mid-send."""

    def __init__(self, delay: float = 0.3):
        super().__init__(vapid_private_key="test-private-key")
        self.delay = delay
        self.started = asyncio.Event()
        self.finished: list[int] = []

    async def dispatch(self, member_id, payload):
        self.started.set()
        await asyncio.sleep(self.delay)
        self.finished.append(member_id)
        return DispatchResult(sent=1, configured=True)


class TestShutdown:
    """Stopping the service while a sweep is delivering."""

    @pytest.mark.asyncio
    async def test_in_flight_sweep_completes(self, temp_db, household):
        temp_db.add_task(
            household.id, "Fenster putzen", "weekly", date(2024, 3, 1), primary_member_id=household.anna
        )
        dispatcher = SlowDispatcher()
        scheduler = AsyncIOScheduler()
        reminders = ReminderScheduler(scheduler, dispatcher=dispatcher, clock=lambda: NOW)
        scheduler.add_job(reminders.run_sweep, args=[ReminderKind.MORNING, "Europe/Zurich"])
        scheduler.start()

        await asyncio.wait_for(dispatcher.started.wait(), timeout=5)
        await reminders.shutdown()

        assert dispatcher.finished == [household.anna]
        assert temp_db.get_marker(ReminderKind.MORNING, household.anna) == date(2024, 3, 1)
        assert scheduler.running is False

    @pytest.mark.asyncio
    async def test_no_new_sweeps_while_draining(self, temp_db, household):
        temp_db.add_task(
            household.id, "Fenster putzen", "weekly", date(2024, 3, 1), primary_member_id=household.anna
        )
        dispatcher = SlowDispatcher()
        scheduler = AsyncIOScheduler()
        reminders = ReminderScheduler(scheduler, dispatcher=dispatcher, clock=lambda: NOW)
        scheduler.add_job(reminders.run_sweep, args=[ReminderKind.MORNING, "Europe/Zurich"])
        scheduler.start()

        await asyncio.wait_for(dispatcher.started.wait(), timeout=5)
        shutting_down = asyncio.create_task(reminders.shutdown())
        await asyncio.sleep(0)
        scheduler.add_job(reminders.run_sweep, args=[ReminderKind.EVENING, "Europe/Zurich"])
        await shutting_down

        assert dispatcher.finished == [household.anna]
        assert temp_db.get_marker(ReminderKind.EVENING, household.anna) is None
