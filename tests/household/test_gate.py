"""Tests for the reminder idempotency gate."""

import asyncio
from datetime import date

import pytest

from domains.household.reminders import NotificationGate
from domains.household.types import ReminderKind

TODAY = date(2024, 3, 1)


class TestShouldFire:
    """The (subject, day, kind) decision."""

    def test_never_fired(self):
        assert NotificationGate.should_fire(1, ReminderKind.MORNING, TODAY, None) is True

    def test_fired_yesterday(self):
        assert NotificationGate.should_fire(1, ReminderKind.MORNING, TODAY, date(2024, 2, 29)) is True

    def test_fired_today(self):
        assert NotificationGate.should_fire(1, ReminderKind.MORNING, TODAY, TODAY) is False


class TestClaim:
    """Marker reads and writes through the store."""

    @pytest.mark.asyncio
    async def test_claim_yields_stored_marker(self, household):
        gate = NotificationGate()

        async with gate.claim(ReminderKind.MORNING, household.anna) as last_fired:
            assert last_fired is None
            gate.mark_fired(ReminderKind.MORNING, household.anna, TODAY)

        async with gate.claim(ReminderKind.MORNING, household.anna) as last_fired:
            assert last_fired == TODAY

    @pytest.mark.asyncio
    async def test_markers_are_per_kind(self, household):
        gate = NotificationGate()
        gate.mark_fired(ReminderKind.MORNING, household.anna, TODAY)

        async with gate.claim(ReminderKind.EVENING, household.anna) as last_fired:
            assert last_fired is None

    @pytest.mark.asyncio
    async def test_concurrent_claims_fire_once(self, household):
        """Two overlapping sweeps for the same member dispatch exactly once."""
        gate = NotificationGate()
        dispatched = []

        async def sweep():
            async with gate.claim(ReminderKind.MORNING, household.anna) as last_fired:
                if gate.should_fire(household.anna, ReminderKind.MORNING, TODAY, last_fired):
                    await asyncio.sleep(0.01)  # dispatch in flight
                    dispatched.append(household.anna)
                    gate.mark_fired(ReminderKind.MORNING, household.anna, TODAY)

        await asyncio.gather(sweep(), sweep())

        assert dispatched == [household.anna]
        assert gate._locks == {}

    @pytest.mark.asyncio
    async def test_failed_dispatch_leaves_marker_unset(self, household):
        gate = NotificationGate()

        with pytest.raises(RuntimeError):
            async with gate.claim(ReminderKind.MORNING, household.ben) as last_fired:
                if gate.should_fire(household.ben, ReminderKind.MORNING, TODAY, last_fired):
                    raise RuntimeError("push service down")

        async with gate.claim(ReminderKind.MORNING, household.ben) as last_fired:
            assert last_fired is None

    @pytest.mark.asyncio
    async def test_locks_released_after_claims(self, household):
        gate = NotificationGate()

        async with gate.claim(ReminderKind.MORNING, household.anna):
            assert set(gate._locks) == {(ReminderKind.MORNING, household.anna)}
        with pytest.raises(RuntimeError):
            async with gate.claim(ReminderKind.PENALTY, 42):
                raise RuntimeError("push service down")

        assert gate._locks == {}
        assert not gate._claims

    @pytest.mark.asyncio
    async def test_waiter_keeps_lock_alive(self, household):
        """A claim queued behind another still excludes a third one."""
        gate = NotificationGate()
        inside = []

        async def sweep(name):
            async with gate.claim(ReminderKind.MORNING, household.anna):
                inside.append(name)
                assert len(inside) == 1
                await asyncio.sleep(0.01)
                inside.remove(name)

        first = asyncio.create_task(sweep("first"))
        second = asyncio.create_task(sweep("second"))
        await asyncio.sleep(0.005)
        third = asyncio.create_task(sweep("third"))
        await asyncio.gather(first, second, third)

        assert gate._locks == {}
