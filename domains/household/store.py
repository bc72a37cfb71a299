"""SQLite entity store for households, members, tasks and push subscriptions.

Only the columns the recurrence engine, the reminder sweeps and the task
actions read or write are modelled here. Lists, access codes and the rest of
the web app's schema belong to the surrounding application.
"""

import json
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Optional

import config
from logger import logger
from .types import Household, Member, PushSubscription, Recurrence, ReminderKind, Task

# Module-level connection (reused for performance)
_connection: Optional[sqlite3.Connection] = None

# (table, column) holding the "last fired" marker for each reminder kind
MARKER_COLUMNS = {
    ReminderKind.MORNING: ("members", "last_daily_push_date"),
    ReminderKind.EVENING: ("members", "last_evening_push_date"),
    ReminderKind.PENALTY: ("tasks", "last_penalty_date"),
}


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _get_connection() -> sqlite3.Connection:
    """Get or create database connection with WAL mode."""
    global _connection

    if _connection is not None:
        return _connection

    db_path = Path(config.DB_PATH)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    _connection = sqlite3.connect(
        config.DB_PATH,
        check_same_thread=False,
        timeout=10.0
    )
    _connection.row_factory = sqlite3.Row
    _connection.execute("PRAGMA journal_mode=WAL")
    _connection.execute("PRAGMA busy_timeout=5000")

    _init_schema(_connection)

    logger.info(f"Household store initialized: {config.DB_PATH}")
    return _connection


def _init_schema(conn: sqlite3.Connection) -> None:
    """Create tables if they don't exist, add columns introduced later."""
    conn.executescript("""
        CREATE TABLE IF NOT EXISTS households (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            timezone TEXT NOT NULL,
            created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS members (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            household_id INTEGER NOT NULL,
            name TEXT NOT NULL,
            created_at TEXT NOT NULL,
            last_daily_push_date TEXT,
            FOREIGN KEY (household_id) REFERENCES households(id)
        );

        CREATE TABLE IF NOT EXISTS tasks (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            household_id INTEGER NOT NULL,
            title TEXT NOT NULL,
            notes TEXT,
            recurrence TEXT NOT NULL,
            due_date TEXT NOT NULL,
            primary_member_id INTEGER,
            secondary_member_id INTEGER,
            created_at TEXT NOT NULL,
            active INTEGER NOT NULL DEFAULT 1,
            FOREIGN KEY (household_id) REFERENCES households(id)
        );

        CREATE TABLE IF NOT EXISTS task_completions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            task_id INTEGER NOT NULL,
            completed_at TEXT NOT NULL,
            completed_by_member_id INTEGER,
            FOREIGN KEY (task_id) REFERENCES tasks(id)
        );

        CREATE TABLE IF NOT EXISTS push_subscriptions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            member_id INTEGER NOT NULL,
            subscription_json TEXT NOT NULL,
            created_at TEXT NOT NULL,
            FOREIGN KEY (member_id) REFERENCES members(id)
        );

        CREATE INDEX IF NOT EXISTS idx_tasks_household_due ON tasks(household_id, active, due_date);
        CREATE INDEX IF NOT EXISTS idx_push_member ON push_subscriptions(member_id);
    """)

    _ensure_column(conn, "tasks", "recurrence_rule", "TEXT")
    _ensure_column(conn, "tasks", "transferred_from_member_id", "INTEGER")
    _ensure_column(conn, "tasks", "transferred_at", "TEXT")
    _ensure_column(conn, "tasks", "last_penalty_date", "TEXT")
    _ensure_column(conn, "members", "last_evening_push_date", "TEXT")
    conn.commit()


def _ensure_column(conn: sqlite3.Connection, table: str, column: str, col_type: str) -> None:
    existing = {row["name"] for row in conn.execute(f"PRAGMA table_info({table})")}
    if column not in existing:
        conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {col_type}")


@contextmanager
def _transaction():
    """Context manager for database transactions."""
    conn = _get_connection()
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise


def close() -> None:
    """Close the module-level connection."""
    global _connection
    if _connection is not None:
        _connection.close()
        _connection = None


def _as_date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


def _household(row: sqlite3.Row) -> Household:
    return Household(id=row["id"], name=row["name"], timezone=row["timezone"])


def _member(row: sqlite3.Row) -> Member:
    return Member(
        id=row["id"],
        household_id=row["household_id"],
        name=row["name"],
        last_daily_push_date=_as_date(row["last_daily_push_date"]),
        last_evening_push_date=_as_date(row["last_evening_push_date"]),
    )


def _task(row: sqlite3.Row) -> Task:
    return Task(
        id=row["id"],
        household_id=row["household_id"],
        title=row["title"],
        recurrence=Recurrence(row["recurrence"]),
        due_date=date.fromisoformat(row["due_date"]),
        recurrence_rule=row["recurrence_rule"],
        primary_member_id=row["primary_member_id"],
        secondary_member_id=row["secondary_member_id"],
        transferred_from_member_id=row["transferred_from_member_id"],
        transferred_at=row["transferred_at"],
        active=bool(row["active"]),
        last_penalty_date=_as_date(row["last_penalty_date"]),
        notes=row["notes"],
    )


def _subscription(row: sqlite3.Row) -> PushSubscription:
    return PushSubscription(
        id=row["id"],
        member_id=row["member_id"],
        subscription=json.loads(row["subscription_json"]),
        created_at=row["created_at"],
    )


# =============================================================================
# HOUSEHOLDS & MEMBERS
# =============================================================================

def add_household(name: str, timezone_name: str) -> int:
    """Create a household and return its ID."""
    with _transaction() as conn:
        cursor = conn.execute(
            "INSERT INTO households (name, timezone, created_at) VALUES (?, ?, ?)",
            (name, timezone_name, now_iso())
        )
        return cursor.lastrowid


def get_household(household_id: int) -> Optional[Household]:
    row = _get_connection().execute(
        "SELECT * FROM households WHERE id = ?", (household_id,)
    ).fetchone()
    return _household(row) if row else None


def get_households() -> list[Household]:
    rows = _get_connection().execute("SELECT * FROM households ORDER BY id ASC").fetchall()
    return [_household(row) for row in rows]


def get_timezones() -> set[str]:
    """Distinct zone names stored on households (unvalidated)."""
    rows = _get_connection().execute("SELECT DISTINCT timezone FROM households").fetchall()
    return {row["timezone"] for row in rows}


def add_member(household_id: int, name: str) -> int:
    """Create a member and return its ID."""
    with _transaction() as conn:
        cursor = conn.execute(
            "INSERT INTO members (household_id, name, created_at) VALUES (?, ?, ?)",
            (household_id, name, now_iso())
        )
        return cursor.lastrowid


def get_member(member_id: int) -> Optional[Member]:
    row = _get_connection().execute(
        "SELECT * FROM members WHERE id = ?", (member_id,)
    ).fetchone()
    return _member(row) if row else None


def get_household_members(household_id: int) -> list[Member]:
    rows = _get_connection().execute(
        "SELECT * FROM members WHERE household_id = ? ORDER BY id ASC", (household_id,)
    ).fetchall()
    return [_member(row) for row in rows]


# =============================================================================
# TASKS
# =============================================================================

def add_task(
    household_id: int,
    title: str,
    recurrence: str,
    due_date: date,
    primary_member_id: Optional[int] = None,
    secondary_member_id: Optional[int] = None,
    recurrence_rule: Optional[str] = None,
    notes: Optional[str] = None,
) -> int:
    """Create a task and return its ID."""
    with _transaction() as conn:
        cursor = conn.execute(
            """
            INSERT INTO tasks
            (household_id, title, notes, recurrence, recurrence_rule, due_date,
             primary_member_id, secondary_member_id, created_at, active)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 1)
            """,
            (household_id, title, notes, Recurrence(recurrence).value, recurrence_rule,
             due_date.isoformat(), primary_member_id, secondary_member_id, now_iso())
        )
        return cursor.lastrowid


def get_task(task_id: int) -> Optional[Task]:
    row = _get_connection().execute(
        "SELECT * FROM tasks WHERE id = ?", (task_id,)
    ).fetchone()
    return _task(row) if row else None


def get_due_tasks(household_id: int, today: date) -> list[Task]:
    """Active tasks of a household due today or overdue."""
    rows = _get_connection().execute(
        """
        SELECT * FROM tasks
        WHERE household_id = ?
          AND active = 1
          AND due_date <= ?
        ORDER BY due_date ASC, id ASC
        """,
        (household_id, today.isoformat())
    ).fetchall()
    return [_task(row) for row in rows]


def record_completion(task_id: int, completed_at: date, completed_by_member_id: Optional[int]) -> int:
    with _transaction() as conn:
        cursor = conn.execute(
            """
            INSERT INTO task_completions (task_id, completed_at, completed_by_member_id)
            VALUES (?, ?, ?)
            """,
            (task_id, completed_at.isoformat(), completed_by_member_id)
        )
        return cursor.lastrowid


def get_completions(task_id: int) -> list[dict]:
    rows = _get_connection().execute(
        "SELECT * FROM task_completions WHERE task_id = ? ORDER BY id ASC", (task_id,)
    ).fetchall()
    return [dict(row) for row in rows]


def deactivate_task(task_id: int) -> None:
    with _transaction() as conn:
        conn.execute("UPDATE tasks SET active = 0 WHERE id = ?", (task_id,))


def reschedule_task(task_id: int, due_date: date) -> None:
    """Store the next due date; transfer attribution does not survive a rollover."""
    with _transaction() as conn:
        conn.execute(
            """
            UPDATE tasks
            SET due_date = ?, transferred_from_member_id = NULL, transferred_at = NULL
            WHERE id = ?
            """,
            (due_date.isoformat(), task_id)
        )


def reassign_task(
    task_id: int,
    primary_member_id: Optional[int],
    secondary_member_id: Optional[int],
    transferred_from_member_id: Optional[int],
) -> None:
    with _transaction() as conn:
        conn.execute(
            """
            UPDATE tasks
            SET primary_member_id = ?, secondary_member_id = ?,
                transferred_from_member_id = ?, transferred_at = ?
            WHERE id = ?
            """,
            (primary_member_id, secondary_member_id, transferred_from_member_id, now_iso(), task_id)
        )


# =============================================================================
# REMINDER MARKERS
# =============================================================================

def get_marker(kind: ReminderKind, subject_id: int) -> Optional[date]:
    """Day a reminder of `kind` last fired for a member (morning/evening) or task (penalty)."""
    table, column = MARKER_COLUMNS[ReminderKind(kind)]
    row = _get_connection().execute(
        f"SELECT {column} AS marker FROM {table} WHERE id = ?", (subject_id,)
    ).fetchone()
    return _as_date(row["marker"]) if row else None


def set_marker(kind: ReminderKind, subject_id: int, day: date) -> None:
    table, column = MARKER_COLUMNS[ReminderKind(kind)]
    with _transaction() as conn:
        conn.execute(
            f"UPDATE {table} SET {column} = ? WHERE id = ?", (day.isoformat(), subject_id)
        )


# =============================================================================
# PUSH SUBSCRIPTIONS
# =============================================================================

def get_subscriptions(member_id: int) -> list[PushSubscription]:
    rows = _get_connection().execute(
        "SELECT * FROM push_subscriptions WHERE member_id = ? ORDER BY id ASC", (member_id,)
    ).fetchall()
    return [_subscription(row) for row in rows]


def count_subscriptions(member_id: int) -> int:
    row = _get_connection().execute(
        "SELECT COUNT(*) AS count FROM push_subscriptions WHERE member_id = ?", (member_id,)
    ).fetchone()
    return row["count"]


def replace_subscription(member_id: int, subscription: dict) -> int:
    """Store a member's browser subscription, dropping any older ones."""
    with _transaction() as conn:
        conn.execute("DELETE FROM push_subscriptions WHERE member_id = ?", (member_id,))
        cursor = conn.execute(
            """
            INSERT INTO push_subscriptions (member_id, subscription_json, created_at)
            VALUES (?, ?, ?)
            """,
            (member_id, json.dumps(subscription), now_iso())
        )
        return cursor.lastrowid


def delete_subscription(subscription_id: int) -> bool:
    """Delete a subscription. Returns False if it was already gone."""
    with _transaction() as conn:
        cursor = conn.execute("DELETE FROM push_subscriptions WHERE id = ?", (subscription_id,))
        return cursor.rowcount > 0
