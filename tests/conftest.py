"""Pytest configuration and fixtures."""

import json
import os
import tempfile
from types import SimpleNamespace
from unittest.mock import patch

import pytest

# Keep test logs out of the working tree (config creates LOG_DIR on import)
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="family_plan_logs_"))

import config  # noqa: E402
from domains.household import store  # noqa: E402
from domains.household.reminders.push import DispatchResult, PushDispatcher  # noqa: E402


def make_subscription(n: int) -> dict:
    """Browser-style push subscription JSON."""
    return {
        "endpoint": f"https://push.example.com/send/device-{n}",
        "keys": {"p256dh": f"p256dh-key-{n}", "auth": f"auth-{n}"},
    }


class RecordingDispatcher(PushDispatcher):
    """Dispatcher that records pushes instead of sending them.

    dispatch_many() is inherited, so de-duplication and exclusion are real.
    """

    def __init__(self):
        super().__init__(vapid_private_key="test-private-key")
        self.calls: list[tuple[int, dict]] = []
        self.fail_for: set[int] = set()

    async def dispatch(self, member_id, payload):
        if member_id in self.fail_for:
            raise RuntimeError("push service exploded")
        self.calls.append((member_id, payload))
        return DispatchResult(sent=1, configured=True)

    def recipients(self) -> list[int]:
        return [member_id for member_id, _ in self.calls]


@pytest.fixture
def temp_db(monkeypatch, tmp_path):
    """Fresh SQLite store for each test."""
    monkeypatch.setattr(config, "DB_PATH", str(tmp_path / "family_test.db"))
    store.close()

    yield store

    store.close()


@pytest.fixture
def household(temp_db):
    """Zurich household with Anna and Ben."""
    household_id = temp_db.add_household("Familie Muster", "Europe/Zurich")
    anna = temp_db.add_member(household_id, "Anna")
    ben = temp_db.add_member(household_id, "Ben")
    return SimpleNamespace(id=household_id, anna=anna, ben=ben)


@pytest.fixture
def vapid(monkeypatch):
    """Pretend a VAPID key pair is configured."""
    monkeypatch.setattr(config, "VAPID_PUBLIC_KEY", "test-public-key")
    monkeypatch.setattr(config, "VAPID_PRIVATE_KEY", "test-private-key")
    monkeypatch.setattr(config, "VAPID_SUBJECT", "mailto:family@example.com")


@pytest.fixture
def no_vapid(monkeypatch):
    monkeypatch.setattr(config, "VAPID_PUBLIC_KEY", None)
    monkeypatch.setattr(config, "VAPID_PRIVATE_KEY", None)


@pytest.fixture
def mock_webpush():
    """Patch pywebpush.webpush where the dispatcher uses it."""
    with patch("domains.household.reminders.push.webpush") as mock:
        yield mock


@pytest.fixture
def recording_dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def add_device(temp_db):
    """Insert an extra subscription row, keeping the member's existing devices.

    The app only ever replaces a member's subscription; devices registered
    before that rule (or by another client) still have to be fanned out to.
    """
    def add(member_id: int, subscription: dict) -> int:
        with temp_db._transaction() as conn:
            cursor = conn.execute(
                "INSERT INTO push_subscriptions (member_id, subscription_json, created_at) VALUES (?, ?, ?)",
                (member_id, json.dumps(subscription), temp_db.now_iso())
            )
            return cursor.lastrowid

    return add


@pytest.fixture
def subscription():
    """Factory for push subscription JSON: subscription(1), subscription(2), ..."""
    return make_subscription
