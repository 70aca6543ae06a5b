"""
LifeOS Reminders — Data Models.

Rows the reminder pipeline reads and writes. Preferences, reminders and job
runs are owned here; tasks, time blocks, habits, goals, pomodoro sessions and
journal entries are produced by the rest of LifeOS and only read.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum


class ReminderType(str, Enum):
    DAILY_SUMMARY = "daily_summary"
    WEEKLY_REVIEW = "weekly_review"
    TASK_DUE = "task_due"
    TIME_BLOCK_STARTING = "time_block_starting"
    POMODORO_REMINDER = "pomodoro_reminder"
    HABIT_REMINDER = "habit_reminder"
    DEADLINE_WARNING = "deadline_warning"
    BREAK_SUGGESTION = "break_suggestion"


class Channel(str, Enum):
    IN_APP = "in_app"
    EMAIL = "email"
    PUSH = "push"
    TELEGRAM = "telegram"


PRIORITIES = ("low", "medium", "high", "urgent")
CHANNEL_NAMES = tuple(c.value for c in Channel)


@dataclass
class NotificationPreference:
    """Per-user reminder settings, saved from the assistant settings screen.

    Times are "HH:MM" in the user's own timezone; weekly_review_day is
    0 (Sunday) through 6 (Saturday).
    """

    user_id: str
    daily_summary_enabled: bool = True
    daily_summary_time: str = "07:00"
    daily_summary_methods: list[str] = field(default_factory=lambda: ["in_app"])
    weekly_review_enabled: bool = True
    weekly_review_day: int = 0
    weekly_review_time: str = "18:00"
    weekly_review_methods: list[str] = field(default_factory=lambda: ["in_app"])
    task_reminders_enabled: bool = True
    task_reminder_advance_hours: int = 24
    task_reminder_methods: list[str] = field(default_factory=lambda: ["in_app"])
    time_block_reminders_enabled: bool = True
    time_block_reminder_advance_minutes: int = 15
    time_block_reminder_methods: list[str] = field(default_factory=lambda: ["in_app"])
    pomodoro_suggestions_enabled: bool = True
    pomodoro_suggestion_interval_hours: int = 2
    break_reminders_enabled: bool = True
    break_reminder_interval_minutes: int = 90
    timezone: str = "UTC"
    email_address: str | None = None
    telegram_chat_id: str | None = None
    push_subscription: dict | None = None


@dataclass
class Reminder:
    """A single notification instance.

    id is None until the row is persisted. Goes unsent → sent once;
    is_read is flipped separately when the user dismisses it.
    """

    user_id: str
    title: str
    message: str
    type: str
    scheduled_for: datetime
    priority: str = "medium"
    delivery_methods: list[str] = field(default_factory=lambda: ["in_app"])
    is_sent: bool = False
    sent_at: datetime | None = None
    is_read: bool = False
    source_id: str | None = None       # task / time block this was queued for
    id: int | None = None
    created_at: datetime | None = None


@dataclass
class ScheduledJobRun:
    """One ledger row per job invocation."""

    id: str
    job_name: str
    job_type: str
    scheduled_at: datetime
    status: str = "running"            # running → completed
    executed_at: datetime | None = None
    users_processed: int = 0
    notifications_sent: int = 0
    execution_duration_ms: int | None = None


# ---------------------------------------------------------------------------
# Context entities (read-only inputs)
# ---------------------------------------------------------------------------


@dataclass
class Task:
    id: str
    user_id: str
    title: str
    priority: str = "medium"
    status: str = "todo"               # todo | in_progress | completed | cancelled
    due_date: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class TimeBlock:
    id: str
    user_id: str
    title: str
    start_time: datetime
    end_time: datetime


@dataclass
class Habit:
    id: str
    user_id: str
    name: str
    current_streak: int = 0
    is_active: bool = True


@dataclass
class HabitEntry:
    id: str
    user_id: str
    habit_id: str
    completed_at: date
    habit_name: str | None = None


@dataclass
class Goal:
    id: str
    user_id: str
    title: str
    progress_percentage: int = 0
    status: str = "active"             # active | completed | paused | cancelled
    target_date: datetime | None = None


@dataclass
class PomodoroSession:
    id: str
    user_id: str
    started_at: datetime
    duration_minutes: int | None = 25
    is_completed: bool = True


@dataclass
class JournalEntry:
    id: str
    user_id: str
    date: date
    mood_rating: float | None = None
