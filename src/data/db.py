"""
LifeOS Reminders — SQLite storage.

The system of record for the reminder pipeline: notification preferences,
reminders, the job ledger, and the activity rows (tasks, time blocks, habits,
goals, pomodoro sessions, journal entries) the pipeline summarizes.

Timestamps are stored as UTC ISO-8601 strings so range filters can compare
them as text; they come back as aware datetimes.
"""

from __future__ import annotations

import json
import logging
import re
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path

from src.data.models import (
    CHANNEL_NAMES,
    PRIORITIES,
    Goal,
    Habit,
    HabitEntry,
    JournalEntry,
    NotificationPreference,
    PomodoroSession,
    Reminder,
    ReminderType,
    ScheduledJobRun,
    Task,
    TimeBlock,
)

logger = logging.getLogger(__name__)

_HHMM_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def _to_db(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="seconds")


def _from_db(value: str | None) -> datetime | None:
    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _new_id() -> str:
    return uuid.uuid4().hex


class _SQLiteDB:
    """Shared connection handling: one short-lived connection per operation."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from src.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# Notification preferences
# ---------------------------------------------------------------------------

_PREF_LIST_COLUMNS = (
    "daily_summary_methods",
    "weekly_review_methods",
    "task_reminder_methods",
    "time_block_reminder_methods",
)
_PREF_BOOL_COLUMNS = (
    "daily_summary_enabled",
    "weekly_review_enabled",
    "task_reminders_enabled",
    "time_block_reminders_enabled",
    "pomodoro_suggestions_enabled",
    "break_reminders_enabled",
)
_PREF_COLUMNS = (
    "user_id",
    "daily_summary_enabled",
    "daily_summary_time",
    "daily_summary_methods",
    "weekly_review_enabled",
    "weekly_review_day",
    "weekly_review_time",
    "weekly_review_methods",
    "task_reminders_enabled",
    "task_reminder_advance_hours",
    "task_reminder_methods",
    "time_block_reminders_enabled",
    "time_block_reminder_advance_minutes",
    "time_block_reminder_methods",
    "pomodoro_suggestions_enabled",
    "pomodoro_suggestion_interval_hours",
    "break_reminders_enabled",
    "break_reminder_interval_minutes",
    "timezone",
    "email_address",
    "telegram_chat_id",
    "push_subscription",
)


def validate_preference(pref: NotificationPreference) -> None:
    """Raise ValueError if a preference row would break the scheduling rules."""
    for name in ("daily_summary_time", "weekly_review_time"):
        value = getattr(pref, name)
        if not isinstance(value, str) or not _HHMM_RE.match(value):
            raise ValueError(f"{name} must be HH:MM (24h), got {value!r}")
    if not 0 <= pref.weekly_review_day <= 6:
        raise ValueError(
            f"weekly_review_day must be 0-6 (0 = Sunday), got {pref.weekly_review_day}"
        )
    for name in _PREF_LIST_COLUMNS:
        unknown = set(getattr(pref, name)) - set(CHANNEL_NAMES)
        if unknown:
            raise ValueError(f"{name} has unknown channels: {sorted(unknown)}")


class PreferenceDB(_SQLiteDB):
    """SQLite-backed storage for per-user notification preferences."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS user_notification_preferences (
                    user_id                             TEXT    PRIMARY KEY,
                    daily_summary_enabled               INTEGER NOT NULL DEFAULT 1,
                    daily_summary_time                  TEXT    NOT NULL DEFAULT '07:00',
                    daily_summary_methods               TEXT    NOT NULL DEFAULT '["in_app"]',
                    weekly_review_enabled               INTEGER NOT NULL DEFAULT 1,
                    weekly_review_day                   INTEGER NOT NULL DEFAULT 0,
                    weekly_review_time                  TEXT    NOT NULL DEFAULT '18:00',
                    weekly_review_methods               TEXT    NOT NULL DEFAULT '["in_app"]',
                    task_reminders_enabled              INTEGER NOT NULL DEFAULT 1,
                    task_reminder_advance_hours         INTEGER NOT NULL DEFAULT 24,
                    task_reminder_methods               TEXT    NOT NULL DEFAULT '["in_app"]',
                    time_block_reminders_enabled        INTEGER NOT NULL DEFAULT 1,
                    time_block_reminder_advance_minutes INTEGER NOT NULL DEFAULT 15,
                    time_block_reminder_methods         TEXT    NOT NULL DEFAULT '["in_app"]',
                    pomodoro_suggestions_enabled        INTEGER NOT NULL DEFAULT 1,
                    pomodoro_suggestion_interval_hours  INTEGER NOT NULL DEFAULT 2,
                    break_reminders_enabled             INTEGER NOT NULL DEFAULT 1,
                    break_reminder_interval_minutes     INTEGER NOT NULL DEFAULT 90,
                    timezone                            TEXT    NOT NULL DEFAULT 'UTC',
                    email_address                       TEXT,
                    telegram_chat_id                    TEXT
                )
            """)
            # Migrate existing DBs: add new columns if missing
            existing_cols = {
                row[1]
                for row in conn.execute(
                    "PRAGMA table_info(user_notification_preferences)"
                ).fetchall()
            }
            if "push_subscription" not in existing_cols:
                conn.execute(
                    "ALTER TABLE user_notification_preferences ADD COLUMN push_subscription TEXT"
                )
        logger.debug("Preferences table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_preference(row: sqlite3.Row) -> NotificationPreference:
        values = {name: row[name] for name in _PREF_COLUMNS}
        for name in _PREF_LIST_COLUMNS:
            values[name] = json.loads(values[name] or "[]")
        for name in _PREF_BOOL_COLUMNS:
            values[name] = bool(values[name])
        if values["push_subscription"]:
            values["push_subscription"] = json.loads(values["push_subscription"])
        return NotificationPreference(**values)

    def get(self, user_id: str) -> NotificationPreference | None:
        """Fetch a user's preferences, or None if they never opened settings."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM user_notification_preferences WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_preference(row)

    def get_or_create(self, user_id: str) -> NotificationPreference:
        """Return the user's preferences, creating the default row on first access."""
        pref = self.get(user_id)
        if pref is not None:
            return pref
        pref = NotificationPreference(user_id=user_id)
        self.save(pref)
        logger.info("Default notification preferences created for user %s", user_id)
        return pref

    def save(self, pref: NotificationPreference) -> NotificationPreference:
        """Validate and upsert a preference row."""
        validate_preference(pref)
        values = []
        for name in _PREF_COLUMNS:
            value = getattr(pref, name)
            if name in _PREF_LIST_COLUMNS:
                value = json.dumps(list(value))
            elif name in _PREF_BOOL_COLUMNS:
                value = int(value)
            elif name == "push_subscription" and value is not None:
                value = json.dumps(value)
            values.append(value)

        columns = ", ".join(_PREF_COLUMNS)
        placeholders = ", ".join("?" for _ in _PREF_COLUMNS)
        updates = ", ".join(
            f"{name} = excluded.{name}" for name in _PREF_COLUMNS if name != "user_id"
        )
        with self._connect() as conn:
            conn.execute(
                f"""
                INSERT INTO user_notification_preferences ({columns})
                VALUES ({placeholders})
                ON CONFLICT(user_id) DO UPDATE SET {updates}
                """,
                values,
            )
        logger.info("Notification preferences saved for user %s", pref.user_id)
        return pref

    def list_enabled(self, flag: str) -> list[NotificationPreference]:
        """Return every preference row with the given *_enabled flag switched on."""
        if flag not in _PREF_BOOL_COLUMNS:
            raise ValueError(f"Unknown preference flag: {flag!r}")
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT * FROM user_notification_preferences WHERE {flag} = 1 "
                "ORDER BY user_id"
            ).fetchall()
        return [self._row_to_preference(r) for r in rows]


# ---------------------------------------------------------------------------
# Reminders
# ---------------------------------------------------------------------------


class ReminderDB(_SQLiteDB):
    """SQLite-backed storage for individual reminder notifications."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS reminders (
                    id               INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id          TEXT    NOT NULL,
                    title            TEXT    NOT NULL,
                    message          TEXT    NOT NULL,
                    type             TEXT    NOT NULL,
                    priority         TEXT    NOT NULL DEFAULT 'medium',
                    scheduled_for    TEXT    NOT NULL,
                    is_sent          INTEGER NOT NULL DEFAULT 0,
                    sent_at          TEXT,
                    is_read          INTEGER NOT NULL DEFAULT 0,
                    delivery_methods TEXT    NOT NULL DEFAULT '["in_app"]',
                    created_at       TEXT    NOT NULL
                )
            """)
            existing_cols = {
                row[1] for row in conn.execute("PRAGMA table_info(reminders)").fetchall()
            }
            if "source_id" not in existing_cols:
                conn.execute("ALTER TABLE reminders ADD COLUMN source_id TEXT")
        logger.debug("Reminders table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_reminder(row: sqlite3.Row) -> Reminder:
        return Reminder(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            message=row["message"],
            type=row["type"],
            priority=row["priority"],
            scheduled_for=_from_db(row["scheduled_for"]),
            is_sent=bool(row["is_sent"]),
            sent_at=_from_db(row["sent_at"]),
            is_read=bool(row["is_read"]),
            delivery_methods=json.loads(row["delivery_methods"]),
            source_id=row["source_id"],
            created_at=_from_db(row["created_at"]),
        )

    def insert(self, reminder: Reminder) -> Reminder:
        """Persist a new reminder and return it with id and created_at filled in."""
        reminder.type = ReminderType(reminder.type).value
        if reminder.priority not in PRIORITIES:
            raise ValueError(f"Unknown priority: {reminder.priority!r}")

        created_at = datetime.now(timezone.utc)
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO reminders
                    (user_id, title, message, type, priority, scheduled_for,
                     is_sent, sent_at, is_read, delivery_methods, created_at, source_id)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    reminder.user_id, reminder.title, reminder.message,
                    reminder.type, reminder.priority, _to_db(reminder.scheduled_for),
                    int(reminder.is_sent), _to_db(reminder.sent_at),
                    int(reminder.is_read), json.dumps(list(reminder.delivery_methods)),
                    _to_db(created_at), reminder.source_id,
                ),
            )
            reminder.id = cursor.lastrowid
        reminder.created_at = created_at
        logger.info(
            "Reminder #%d '%s' stored for user %s", reminder.id, reminder.type, reminder.user_id
        )
        return reminder

    def get(self, reminder_id: int) -> Reminder | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM reminders WHERE id = ?", (reminder_id,)
            ).fetchone()
        if row is None:
            return None
        return self._row_to_reminder(row)

    def mark_sent(self, reminder_id: int, sent_at: datetime) -> bool:
        """Flip an unsent reminder to sent. Returns False if it was already sent."""
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE reminders SET is_sent = 1, sent_at = ? WHERE id = ? AND is_sent = 0",
                (_to_db(sent_at), reminder_id),
            )
        return cursor.rowcount > 0

    def mark_read(self, reminder_id: int) -> bool:
        """Dismiss a reminder. Returns False if no such reminder exists."""
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE reminders SET is_read = 1 WHERE id = ?", (reminder_id,),
            )
        return cursor.rowcount > 0

    def list_pending(self, types: list[str], now: datetime) -> list[Reminder]:
        """Unsent reminders of the given types that are due, oldest first."""
        type_values = [ReminderType(t).value for t in types]
        placeholders = ", ".join("?" for _ in type_values)
        with self._connect() as conn:
            rows = conn.execute(
                f"""
                SELECT * FROM reminders
                WHERE is_sent = 0 AND type IN ({placeholders}) AND scheduled_for <= ?
                ORDER BY scheduled_for, id
                """,
                [*type_values, _to_db(now)],
            ).fetchall()
        return [self._row_to_reminder(r) for r in rows]

    def list_for_user(
        self,
        user_id: str,
        unread_only: bool = False,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int = 50,
    ) -> list[Reminder]:
        """A user's reminders, newest first, as shown on the dashboard."""
        query = "SELECT * FROM reminders WHERE user_id = ?"
        params: list = [user_id]
        if unread_only:
            query += " AND is_read = 0"
        if since is not None:
            query += " AND scheduled_for >= ?"
            params.append(_to_db(since))
        if until is not None:
            query += " AND scheduled_for < ?"
            params.append(_to_db(until))
        query += " ORDER BY created_at DESC, id DESC LIMIT ?"
        params.append(limit)

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_reminder(r) for r in rows]

    def exists_for_source(self, user_id: str, reminder_type: str, source_id: str) -> bool:
        """Check whether a reminder was already queued for this task/time block."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM reminders WHERE user_id = ? AND type = ? AND source_id = ?",
                (user_id, ReminderType(reminder_type).value, source_id),
            ).fetchone()
        return row is not None


# ---------------------------------------------------------------------------
# Job ledger
# ---------------------------------------------------------------------------


class JobLedger(_SQLiteDB):
    """Append-only log of job runs: running on start, completed on finish."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS scheduled_jobs (
                    id                    TEXT    PRIMARY KEY,
                    job_name              TEXT    NOT NULL,
                    job_type              TEXT    NOT NULL,
                    scheduled_at          TEXT    NOT NULL,
                    status                TEXT    NOT NULL DEFAULT 'running',
                    executed_at           TEXT,
                    users_processed       INTEGER NOT NULL DEFAULT 0,
                    notifications_sent    INTEGER NOT NULL DEFAULT 0,
                    execution_duration_ms INTEGER
                )
            """)
        logger.debug("Job ledger initialized at %s", self._db_path)

    @staticmethod
    def _row_to_run(row: sqlite3.Row) -> ScheduledJobRun:
        return ScheduledJobRun(
            id=row["id"],
            job_name=row["job_name"],
            job_type=row["job_type"],
            scheduled_at=_from_db(row["scheduled_at"]),
            status=row["status"],
            executed_at=_from_db(row["executed_at"]),
            users_processed=row["users_processed"],
            notifications_sent=row["notifications_sent"],
            execution_duration_ms=row["execution_duration_ms"],
        )

    def start_run(self, job_name: str, job_type: str) -> str:
        """Insert a running row and return its id."""
        job_id = _new_id()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO scheduled_jobs (id, job_name, job_type, scheduled_at, status)
                VALUES (?, ?, ?, ?, 'running')
                """,
                (job_id, job_name, job_type, _to_db(datetime.now(timezone.utc))),
            )
        logger.info("Job %s started: %s", job_name, job_id)
        return job_id

    def finish_run(
        self,
        job_id: str,
        users_processed: int,
        notifications_sent: int,
        duration_ms: int,
    ) -> None:
        """Mark a running job completed. Raises ValueError if it is not running."""
        with self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE scheduled_jobs
                SET status = 'completed', executed_at = ?, users_processed = ?,
                    notifications_sent = ?, execution_duration_ms = ?
                WHERE id = ? AND status = 'running'
                """,
                (
                    _to_db(datetime.now(timezone.utc)), users_processed,
                    notifications_sent, duration_ms, job_id,
                ),
            )
        if cursor.rowcount == 0:
            raise ValueError(f"Job run {job_id} not found or already finished")
        logger.info(
            "Job %s completed: %d users, %d notifications, %d ms",
            job_id, users_processed, notifications_sent, duration_ms,
        )

    def get_run(self, job_id: str) -> ScheduledJobRun | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM scheduled_jobs WHERE id = ?", (job_id,)
            ).fetchone()
        if row is None:
            return None
        return self._row_to_run(row)

    def list_runs(self, status: str | None = None) -> list[ScheduledJobRun]:
        query = "SELECT * FROM scheduled_jobs"
        params: list = []
        if status is not None:
            query += " WHERE status = ?"
            params.append(status)
        query += " ORDER BY scheduled_at"
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_run(r) for r in rows]


# ---------------------------------------------------------------------------
# Activity (read by the pipeline, written by the rest of LifeOS)
# ---------------------------------------------------------------------------


class ActivityDB(_SQLiteDB):
    """Tasks, time blocks, habits, goals, pomodoro sessions and journal entries."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS tasks (
                    id         TEXT PRIMARY KEY,
                    user_id    TEXT NOT NULL,
                    title      TEXT NOT NULL,
                    priority   TEXT NOT NULL DEFAULT 'medium',
                    status     TEXT NOT NULL DEFAULT 'todo',
                    due_date   TEXT,
                    updated_at TEXT NOT NULL
                );
                CREATE TABLE IF NOT EXISTS time_blocks (
                    id         TEXT PRIMARY KEY,
                    user_id    TEXT NOT NULL,
                    title      TEXT NOT NULL,
                    start_time TEXT NOT NULL,
                    end_time   TEXT NOT NULL
                );
                CREATE TABLE IF NOT EXISTS habits (
                    id             TEXT    PRIMARY KEY,
                    user_id        TEXT    NOT NULL,
                    name           TEXT    NOT NULL,
                    current_streak INTEGER NOT NULL DEFAULT 0,
                    is_active      INTEGER NOT NULL DEFAULT 1
                );
                CREATE TABLE IF NOT EXISTS habit_entries (
                    id           TEXT PRIMARY KEY,
                    user_id      TEXT NOT NULL,
                    habit_id     TEXT NOT NULL,
                    completed_at TEXT NOT NULL
                );
                CREATE TABLE IF NOT EXISTS goals (
                    id                  TEXT    PRIMARY KEY,
                    user_id             TEXT    NOT NULL,
                    title               TEXT    NOT NULL,
                    progress_percentage INTEGER NOT NULL DEFAULT 0,
                    status              TEXT    NOT NULL DEFAULT 'active',
                    target_date         TEXT
                );
                CREATE TABLE IF NOT EXISTS pomodoro_sessions (
                    id               TEXT    PRIMARY KEY,
                    user_id          TEXT    NOT NULL,
                    started_at       TEXT    NOT NULL,
                    duration_minutes INTEGER,
                    is_completed     INTEGER NOT NULL DEFAULT 0
                );
                CREATE TABLE IF NOT EXISTS journal_entries (
                    id          TEXT PRIMARY KEY,
                    user_id     TEXT NOT NULL,
                    date        TEXT NOT NULL,
                    mood_rating REAL
                );
            """)
        logger.debug("Activity tables initialized at %s", self._db_path)

    # -- writes -------------------------------------------------------------

    def add_task(
        self,
        user_id: str,
        title: str,
        priority: str = "medium",
        status: str = "todo",
        due_date: datetime | None = None,
        updated_at: datetime | None = None,
    ) -> Task:
        if priority not in PRIORITIES:
            raise ValueError(f"Unknown priority: {priority!r}")
        task = Task(
            id=_new_id(), user_id=user_id, title=title, priority=priority,
            status=status, due_date=due_date,
            updated_at=updated_at or datetime.now(timezone.utc),
        )
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO tasks (id, user_id, title, priority, status, due_date, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    task.id, user_id, title, priority, status,
                    _to_db(due_date), _to_db(task.updated_at),
                ),
            )
        return task

    def add_time_block(
        self, user_id: str, title: str, start_time: datetime, end_time: datetime,
    ) -> TimeBlock:
        if end_time <= start_time:
            raise ValueError("Time block must end after it starts")
        block = TimeBlock(
            id=_new_id(), user_id=user_id, title=title,
            start_time=start_time, end_time=end_time,
        )
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO time_blocks (id, user_id, title, start_time, end_time) "
                "VALUES (?, ?, ?, ?, ?)",
                (block.id, user_id, title, _to_db(start_time), _to_db(end_time)),
            )
        return block

    def add_habit(
        self, user_id: str, name: str, current_streak: int = 0, is_active: bool = True,
    ) -> Habit:
        habit = Habit(
            id=_new_id(), user_id=user_id, name=name,
            current_streak=current_streak, is_active=is_active,
        )
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO habits (id, user_id, name, current_streak, is_active) "
                "VALUES (?, ?, ?, ?, ?)",
                (habit.id, user_id, name, current_streak, int(is_active)),
            )
        return habit

    def add_habit_entry(self, user_id: str, habit_id: str, completed_at: date) -> HabitEntry:
        entry = HabitEntry(
            id=_new_id(), user_id=user_id, habit_id=habit_id, completed_at=completed_at,
        )
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO habit_entries (id, user_id, habit_id, completed_at) "
                "VALUES (?, ?, ?, ?)",
                (entry.id, user_id, habit_id, completed_at.isoformat()),
            )
        return entry

    def add_goal(
        self,
        user_id: str,
        title: str,
        progress_percentage: int = 0,
        status: str = "active",
        target_date: datetime | None = None,
    ) -> Goal:
        goal = Goal(
            id=_new_id(), user_id=user_id, title=title,
            progress_percentage=progress_percentage, status=status,
            target_date=target_date,
        )
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO goals (id, user_id, title, progress_percentage, status, target_date) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (goal.id, user_id, title, progress_percentage, status, _to_db(target_date)),
            )
        return goal

    def add_pomodoro_session(
        self,
        user_id: str,
        started_at: datetime,
        duration_minutes: int | None = 25,
        is_completed: bool = True,
    ) -> PomodoroSession:
        session = PomodoroSession(
            id=_new_id(), user_id=user_id, started_at=started_at,
            duration_minutes=duration_minutes, is_completed=is_completed,
        )
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO pomodoro_sessions (id, user_id, started_at, duration_minutes, is_completed) "
                "VALUES (?, ?, ?, ?, ?)",
                (session.id, user_id, _to_db(started_at), duration_minutes, int(is_completed)),
            )
        return session

    def add_journal_entry(
        self, user_id: str, entry_date: date, mood_rating: float | None = None,
    ) -> JournalEntry:
        entry = JournalEntry(
            id=_new_id(), user_id=user_id, date=entry_date, mood_rating=mood_rating,
        )
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO journal_entries (id, user_id, date, mood_rating) VALUES (?, ?, ?, ?)",
                (entry.id, user_id, entry_date.isoformat(), mood_rating),
            )
        return entry

    # -- reads --------------------------------------------------------------

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            priority=row["priority"],
            status=row["status"],
            due_date=_from_db(row["due_date"]),
            updated_at=_from_db(row["updated_at"]),
        )

    @staticmethod
    def _row_to_time_block(row: sqlite3.Row) -> TimeBlock:
        return TimeBlock(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            start_time=_from_db(row["start_time"]),
            end_time=_from_db(row["end_time"]),
        )

    def open_tasks_due_before(self, user_id: str, before: datetime) -> list[Task]:
        """Todo / in-progress tasks due before a cutoff (overdue included)."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM tasks
                WHERE user_id = ? AND status IN ('todo', 'in_progress')
                  AND due_date IS NOT NULL AND due_date < ?
                ORDER BY due_date
                """,
                (user_id, _to_db(before)),
            ).fetchall()
        return [self._row_to_task(r) for r in rows]

    def open_tasks_due_between(
        self, user_id: str, start: datetime, end: datetime,
    ) -> list[Task]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM tasks
                WHERE user_id = ? AND status IN ('todo', 'in_progress')
                  AND due_date >= ? AND due_date < ?
                ORDER BY due_date
                """,
                (user_id, _to_db(start), _to_db(end)),
            ).fetchall()
        return [self._row_to_task(r) for r in rows]

    def tasks_completed_between(
        self, user_id: str, start: datetime, end: datetime,
    ) -> list[Task]:
        """Tasks marked completed (by updated_at) within [start, end), newest first."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM tasks
                WHERE user_id = ? AND status = 'completed'
                  AND updated_at >= ? AND updated_at < ?
                ORDER BY updated_at DESC
                """,
                (user_id, _to_db(start), _to_db(end)),
            ).fetchall()
        return [self._row_to_task(r) for r in rows]

    def time_blocks_between(
        self, user_id: str, start: datetime, end: datetime,
    ) -> list[TimeBlock]:
        """Time blocks starting within [start, end), earliest first."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM time_blocks
                WHERE user_id = ? AND start_time >= ? AND start_time < ?
                ORDER BY start_time
                """,
                (user_id, _to_db(start), _to_db(end)),
            ).fetchall()
        return [self._row_to_time_block(r) for r in rows]

    def active_habits(self, user_id: str) -> list[Habit]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM habits WHERE user_id = ? AND is_active = 1 ORDER BY name",
                (user_id,),
            ).fetchall()
        return [
            Habit(
                id=r["id"], user_id=r["user_id"], name=r["name"],
                current_streak=r["current_streak"], is_active=bool(r["is_active"]),
            )
            for r in rows
        ]

    def habit_entries_between(
        self, user_id: str, start: date, end: date,
    ) -> list[HabitEntry]:
        """Habit completions dated within [start, end), joined with the habit name."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT e.*, h.name AS habit_name
                FROM habit_entries e LEFT JOIN habits h ON h.id = e.habit_id
                WHERE e.user_id = ? AND e.completed_at >= ? AND e.completed_at < ?
                ORDER BY e.completed_at
                """,
                (user_id, start.isoformat(), end.isoformat()),
            ).fetchall()
        return [
            HabitEntry(
                id=r["id"], user_id=r["user_id"], habit_id=r["habit_id"],
                completed_at=date.fromisoformat(r["completed_at"]),
                habit_name=r["habit_name"],
            )
            for r in rows
        ]

    def goals(
        self,
        user_id: str,
        statuses: tuple[str, ...] = ("active",),
        target_before: datetime | None = None,
    ) -> list[Goal]:
        """Goals in the given statuses, optionally only those due before a cutoff."""
        placeholders = ", ".join("?" for _ in statuses)
        query = f"SELECT * FROM goals WHERE user_id = ? AND status IN ({placeholders})"
        params: list = [user_id, *statuses]
        if target_before is not None:
            query += " AND target_date IS NOT NULL AND target_date <= ?"
            params.append(_to_db(target_before))
        query += " ORDER BY target_date"
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [
            Goal(
                id=r["id"], user_id=r["user_id"], title=r["title"],
                progress_percentage=r["progress_percentage"], status=r["status"],
                target_date=_from_db(r["target_date"]),
            )
            for r in rows
        ]

    def completed_pomodoro_sessions_between(
        self, user_id: str, start: datetime, end: datetime,
    ) -> list[PomodoroSession]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM pomodoro_sessions
                WHERE user_id = ? AND is_completed = 1
                  AND started_at >= ? AND started_at < ?
                ORDER BY started_at
                """,
                (user_id, _to_db(start), _to_db(end)),
            ).fetchall()
        return [
            PomodoroSession(
                id=r["id"], user_id=r["user_id"], started_at=_from_db(r["started_at"]),
                duration_minutes=r["duration_minutes"], is_completed=bool(r["is_completed"]),
            )
            for r in rows
        ]

    def journal_entries_between(
        self, user_id: str, start: date, end: date,
    ) -> list[JournalEntry]:
        """Journal entries dated within [start, end), mood ratings only."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT id, user_id, date, mood_rating FROM journal_entries
                WHERE user_id = ? AND date >= ? AND date < ?
                ORDER BY date
                """,
                (user_id, start.isoformat(), end.isoformat()),
            ).fetchall()
        return [
            JournalEntry(
                id=r["id"], user_id=r["user_id"], date=date.fromisoformat(r["date"]),
                mood_rating=r["mood_rating"],
            )
            for r in rows
        ]


# ---------------------------------------------------------------------------
# Store bundle
# ---------------------------------------------------------------------------


@dataclass
class DataStore:
    """Everything a job needs from the system of record, injected per run."""

    preferences: PreferenceDB
    reminders: ReminderDB
    jobs: JobLedger
    activity: ActivityDB


def open_store(db_path: str | None = None) -> DataStore:
    """Open (and migrate) every table in one SQLite database file."""
    return DataStore(
        preferences=PreferenceDB(db_path),
        reminders=ReminderDB(db_path),
        jobs=JobLedger(db_path),
        activity=ActivityDB(db_path),
    )
