"""Idempotency gate for the daily reminder sweeps.

Each subject carries one "last fired" marker per reminder kind:

- morning: members.last_daily_push_date
- evening: members.last_evening_push_date
- penalty: tasks.last_penalty_date

A sweep claims a subject, re-reads its marker, dispatches and only then
writes the marker. The claim is a per-(kind, subject) lock, so two sweeps that
overlap cannot both pass the check before either has written. A lock lives
only while some sweep holds or waits for it.
"""

import asyncio
from collections import Counter
from contextlib import asynccontextmanager
from datetime import date
from typing import Optional

from .. import store
from ..types import ReminderKind


class NotificationGate:
    """Decides whether a (subject, day, kind) reminder still has to fire."""

    def __init__(self):
        self._locks: dict[tuple[ReminderKind, int], asyncio.Lock] = {}
        self._claims: Counter = Counter()  # holders plus waiters per key

    @staticmethod
    def should_fire(subject_id: int, kind: ReminderKind, today: date, last_fired: Optional[date]) -> bool:
        """True unless the reminder already fired today."""
        return last_fired != today

    @asynccontextmanager
    async def claim(self, kind: ReminderKind, subject_id: int):
        """Hold the subject's lock and yield its current marker.

        Usage:
            async with gate.claim(ReminderKind.MORNING, member.id) as last_fired:
                if gate.should_fire(member.id, kind, today, last_fired):
                    await dispatcher.dispatch(...)
                    gate.mark_fired(kind, member.id, today)
        """
        key = (ReminderKind(kind), subject_id)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._claims[key] += 1
        try:
            async with lock:
                yield store.get_marker(kind, subject_id)
        finally:
            self._claims[key] -= 1
            if not self._claims[key]:
                del self._claims[key]
                del self._locks[key]

    @staticmethod
    def mark_fired(kind: ReminderKind, subject_id: int, today: date) -> None:
        """Persist the marker. Call only after dispatch returned."""
        store.set_marker(kind, subject_id, today)
