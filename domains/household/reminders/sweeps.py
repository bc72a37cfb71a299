"""The three daily reminder sweeps.

Each sweep is a function of an instant plus store state: "today" is computed
per household in the household's own zone from `now`, so a test can pass a
fixed instant instead of waiting for the wall clock.

Failures are scoped to one household, member or task. They are logged and
counted in the SweepReport; a sweep never raises because of one subject.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from logger import logger
from .. import messages, store
from ..calendar_math import household_zone, local_today
from ..types import Household, Member, ReminderKind, Task
from .gate import NotificationGate
from .push import DispatchResult, PushDispatcher


@dataclass
class SweepReport:
    """Counts for one sweep run."""
    kind: ReminderKind
    households: int = 0
    notified: int = 0   # subjects a dispatch was made for
    skipped: int = 0    # subjects that already fired today
    sent: int = 0
    failed: int = 0
    errors: int = 0     # subjects/households that raised

    def record(self, result: DispatchResult) -> None:
        self.notified += 1
        self.sent += result.sent
        self.failed += result.failed

    def summary(self) -> str:
        return (
            f"{self.kind.value} sweep: {self.households} households, {self.notified} notified, "
            f"{self.skipped} already done, {self.sent} sent, {self.failed} failed, {self.errors} errors"
        )


def _households(timezones: Optional[set[str]]) -> list[tuple[Household, ZoneInfo]]:
    """Households (with resolved zone), optionally limited to some zone names."""
    selected = []
    for household in store.get_households():
        zone = household_zone(household.timezone)
        if timezones is None or zone.key in timezones:
            selected.append((household, zone))
    return selected


async def _sweep_members(
    kind: ReminderKind,
    dispatcher: PushDispatcher,
    gate: NotificationGate,
    now: Optional[datetime],
    timezones: Optional[set[str]],
    wants: Callable[[Task, int], bool],
    build_payload: Callable[[Member, list[Task], date], dict],
) -> SweepReport:
    """Shared shape of the morning and evening sweeps."""
    now = now or datetime.now(timezone.utc)
    report = SweepReport(kind)

    try:
        households = _households(timezones)
    except Exception as e:
        report.errors += 1
        logger.error(f"{kind.value} sweep: failed to list households: {e}")
        return report

    for household, zone in households:
        report.households += 1
        try:
            today = local_today(zone, now)
            tasks = store.get_due_tasks(household.id, today)
            if not tasks:
                continue
            members = store.get_household_members(household.id)
        except Exception as e:
            report.errors += 1
            logger.error(f"{kind.value} sweep: failed to load household {household.id}: {e}")
            continue

        for member in members:
            member_tasks = [task for task in tasks if wants(task, member.id)]
            if not member_tasks:
                continue

            try:
                async with gate.claim(kind, member.id) as last_fired:
                    if not gate.should_fire(member.id, kind, today, last_fired):
                        report.skipped += 1
                        continue
                    result = await dispatcher.dispatch(
                        member.id, build_payload(member, member_tasks, today)
                    )
                    gate.mark_fired(kind, member.id, today)
                report.record(result)
            except Exception as e:
                report.errors += 1
                logger.error(f"{kind.value} sweep: reminder for member {member.id} failed: {e}")

    logger.info(report.summary())
    return report


async def send_morning_reminders(
    dispatcher: PushDispatcher,
    gate: NotificationGate,
    now: Optional[datetime] = None,
    timezones: Optional[set[str]] = None,
) -> SweepReport:
    """07:00 - everything due for a member as primary or secondary assignee."""
    return await _sweep_members(
        ReminderKind.MORNING, dispatcher, gate, now, timezones,
        wants=lambda task, member_id: task.is_assigned_to(member_id),
        build_payload=messages.morning_payload,
    )


async def send_evening_reminders(
    dispatcher: PushDispatcher,
    gate: NotificationGate,
    now: Optional[datetime] = None,
    timezones: Optional[set[str]] = None,
) -> SweepReport:
    """20:00 - open tasks of the primary assignee only."""
    return await _sweep_members(
        ReminderKind.EVENING, dispatcher, gate, now, timezones,
        wants=lambda task, member_id: task.primary_member_id == member_id,
        build_payload=messages.evening_payload,
    )


async def send_penalty_reminders(
    dispatcher: PushDispatcher,
    gate: NotificationGate,
    now: Optional[datetime] = None,
    timezones: Optional[set[str]] = None,
) -> SweepReport:
    """21:00 - one push per still-open task to its primary assignee.

    The secondary assignee, if any, is named as the one the penalty is owed to.
    """
    kind = ReminderKind.PENALTY
    now = now or datetime.now(timezone.utc)
    report = SweepReport(kind)

    try:
        households = _households(timezones)
    except Exception as e:
        report.errors += 1
        logger.error(f"{kind.value} sweep: failed to list households: {e}")
        return report

    for household, zone in households:
        report.households += 1
        try:
            today = local_today(zone, now)
            tasks = store.get_due_tasks(household.id, today)
        except Exception as e:
            report.errors += 1
            logger.error(f"penalty sweep: failed to load household {household.id}: {e}")
            continue

        for task in tasks:
            if not task.primary_member_id:
                continue

            try:
                async with gate.claim(kind, task.id) as last_fired:
                    if not gate.should_fire(task.id, kind, today, last_fired):
                        report.skipped += 1
                        continue
                    primary = store.get_member(task.primary_member_id)
                    if not primary:
                        continue
                    secondary = (
                        store.get_member(task.secondary_member_id) if task.secondary_member_id else None
                    )
                    result = await dispatcher.dispatch(
                        primary.id, messages.penalty_payload(task, secondary, today)
                    )
                    gate.mark_fired(kind, task.id, today)
                report.record(result)
            except Exception as e:
                report.errors += 1
                logger.error(f"penalty sweep: reminder for task {task.id} failed: {e}")

    logger.info(report.summary())
    return report


SWEEPS = {
    ReminderKind.MORNING: send_morning_reminders,
    ReminderKind.EVENING: send_evening_reminders,
    ReminderKind.PENALTY: send_penalty_reminders,
}
