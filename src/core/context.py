"""
LifeOS Reminders — Context Aggregator.

Collects everything a summary needs about one user (tasks, time blocks,
habits, goals, pomodoro sessions, journal entries) for a time window.

The SQLite reads are independent, so they run concurrently in worker threads
and are awaited together. An empty table is just an empty list; a store error
propagates and aborts this user's processing for the current run.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import TYPE_CHECKING

from src.core.eligibility import sunday_weekday, to_local, user_zone

if TYPE_CHECKING:
    from src.data.db import DataStore
    from src.data.models import (
        Goal,
        Habit,
        HabitEntry,
        JournalEntry,
        PomodoroSession,
        Task,
        TimeBlock,
    )

logger = logging.getLogger(__name__)

GOAL_HORIZON_DAYS = 7


@dataclass
class UserContext:
    """Per-user bundle handed to the message synthesizer."""

    user_id: str
    window_start: datetime
    window_end: datetime
    tasks: list[Task] = field(default_factory=list)
    time_blocks: list[TimeBlock] = field(default_factory=list)
    habits: list[Habit] = field(default_factory=list)
    goals: list[Goal] = field(default_factory=list)
    pomodoro_sessions: list[PomodoroSession] = field(default_factory=list)
    journal_entries: list[JournalEntry] = field(default_factory=list)
    habit_entries: list[HabitEntry] = field(default_factory=list)


def _local_midnight(day: date, tz_name: str | None) -> datetime:
    return datetime.combine(day, time.min, tzinfo=user_zone(tz_name))


def daily_window(now: datetime, tz_name: str | None) -> tuple[datetime, datetime]:
    """Today in the user's timezone: [local midnight, next local midnight)."""
    today = to_local(now, tz_name).date()
    return (
        _local_midnight(today, tz_name),
        _local_midnight(today + timedelta(days=1), tz_name),
    )


def weekly_window(now: datetime, tz_name: str | None) -> tuple[datetime, datetime]:
    """This week in the user's timezone, Sunday 00:00 to the next Sunday 00:00."""
    local = to_local(now, tz_name)
    sunday = local.date() - timedelta(days=sunday_weekday(local))
    return (
        _local_midnight(sunday, tz_name),
        _local_midnight(sunday + timedelta(days=7), tz_name),
    )


async def _fetch(fn, *args) -> list:
    rows = await asyncio.to_thread(fn, *args)
    return list(rows or [])


async def gather_daily_context(
    store: DataStore,
    user_id: str,
    now: datetime,
    tz_name: str | None,
) -> UserContext:
    """Open tasks due by end of tomorrow, today's blocks, habits, near goals."""
    day_start, day_end = daily_window(now, tz_name)
    tomorrow_end = day_end + timedelta(days=1)
    goal_cutoff = now + timedelta(days=GOAL_HORIZON_DAYS)
    activity = store.activity

    tasks, blocks, habits, goals, sessions, journal = await asyncio.gather(
        _fetch(activity.open_tasks_due_before, user_id, tomorrow_end),
        _fetch(activity.time_blocks_between, user_id, day_start, day_end),
        _fetch(activity.active_habits, user_id),
        _fetch(activity.goals, user_id, ("active",), goal_cutoff),
        _fetch(activity.completed_pomodoro_sessions_between, user_id, day_start, day_end),
        _fetch(
            activity.journal_entries_between,
            user_id, day_start.date(), day_end.date(),
        ),
    )
    logger.debug(
        "Daily context for %s: %d tasks, %d blocks, %d habits, %d goals",
        user_id, len(tasks), len(blocks), len(habits), len(goals),
    )
    return UserContext(
        user_id=user_id,
        window_start=day_start,
        window_end=day_end,
        tasks=tasks,
        time_blocks=blocks,
        habits=habits,
        goals=goals,
        pomodoro_sessions=sessions,
        journal_entries=journal,
    )


async def gather_weekly_context(
    store: DataStore,
    user_id: str,
    now: datetime,
    tz_name: str | None,
) -> UserContext:
    """Everything completed, scheduled or logged during the current week."""
    week_start, week_end = weekly_window(now, tz_name)
    activity = store.activity

    tasks, blocks, habits, goals, sessions, journal, entries = await asyncio.gather(
        _fetch(activity.tasks_completed_between, user_id, week_start, week_end),
        _fetch(activity.time_blocks_between, user_id, week_start, week_end),
        _fetch(activity.active_habits, user_id),
        _fetch(activity.goals, user_id, ("active", "completed")),
        _fetch(activity.completed_pomodoro_sessions_between, user_id, week_start, week_end),
        _fetch(
            activity.journal_entries_between,
            user_id, week_start.date(), week_end.date(),
        ),
        _fetch(
            activity.habit_entries_between,
            user_id, week_start.date(), week_end.date(),
        ),
    )
    logger.debug(
        "Weekly context for %s: %d completed tasks, %d sessions, %d habit entries",
        user_id, len(tasks), len(sessions), len(entries),
    )
    return UserContext(
        user_id=user_id,
        window_start=week_start,
        window_end=week_end,
        tasks=tasks,
        time_blocks=blocks,
        habits=habits,
        goals=goals,
        pomodoro_sessions=sessions,
        journal_entries=journal,
        habit_entries=entries,
    )
