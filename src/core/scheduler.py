"""
LifeOS Reminders — Scheduled Jobs.

Daily Reminder: for every user with the daily summary enabled whose local
time is within an hour of their configured time, summarize today's tasks,
time blocks, habits and goal deadlines.

Weekly Review: same shape, on the user's configured day, summarizing the
week's completed work, focus time, habits, mood and goal progress.

Time-block Reminder: queues task-due and time-block-starting reminders that
fall inside each user's advance window, then delivers every pending one.

Each job is triggered externally (HTTP or CLI), writes one ledger row, and
isolates failures per user: an error for one user is logged and the loop
moves on. Per-user work has two phases. The prepare phase (reads and message
synthesis) is bounded by USER_TIMEOUT_SECONDS; the write phase (queue inserts
and delivery) only starts once prepare finished in time, and is not
interrupted. This module depends on the NotificationChannel protocol and the
DataStore bundle, not on specific providers.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Awaitable, Callable, TypeVar

from src.config import settings
from src.core.context import gather_daily_context, gather_weekly_context
from src.core.delivery import deliver_message, dispatch_queued_reminder
from src.core.eligibility import is_eligible_now, is_weekly_eligible_now
from src.core.messages import (
    daily_title,
    format_daily_summary,
    format_weekly_review,
    task_due_text,
    time_block_text,
    weekly_title,
)
from src.data.models import Reminder, ReminderType

if TYPE_CHECKING:
    from src.data.db import DataStore
    from src.data.models import NotificationPreference
    from src.ports.notification_port import NotificationChannel

logger = logging.getLogger(__name__)

T = TypeVar("T")
P = TypeVar("P")
R = TypeVar("R")

QUEUED_TYPES = [ReminderType.TIME_BLOCK_STARTING.value, ReminderType.TASK_DUE.value]


@dataclass
class JobResult:
    """Counters reported by a job run and stored in the ledger."""

    users_processed: int = 0
    notifications_sent: int = 0
    duration_ms: int = 0
    reminders_processed: int | None = None

    def to_response(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "success": True,
            "usersProcessed": self.users_processed,
            "notificationsSent": self.notifications_sent,
            "duration": self.duration_ms,
        }
        if self.reminders_processed is not None:
            body["remindersProcessed"] = self.reminders_processed
        return body


# ---------------------------------------------------------------------------
# Shared plumbing
# ---------------------------------------------------------------------------


def _zone_for(pref: NotificationPreference) -> str:
    return pref.timezone or settings.DEFAULT_TIMEZONE


async def _process_each(
    items: list[T],
    prepare: Callable[[T], Awaitable[P]],
    commit: Callable[[T, P], Awaitable[R]],
    describe: Callable[[T], str],
) -> list[R]:
    """Run prepare then commit over items with bounded concurrency.

    prepare must not write: it is abandoned after USER_TIMEOUT_SECONDS, and
    a worker thread it started may still be running. commit gets prepare's
    result and is awaited to completion, so whatever it writes is reflected
    in the returned results. Failures in either phase (including timeouts)
    are logged and dropped; the returned list holds only the results of
    items that completed.
    """
    semaphore = asyncio.Semaphore(settings.JOB_CONCURRENCY)

    async def _guarded(item: T) -> tuple[bool, R | None]:
        async with semaphore:
            try:
                prepared = await asyncio.wait_for(
                    prepare(item), timeout=settings.USER_TIMEOUT_SECONDS,
                )
                return True, await commit(item, prepared)
            except Exception as exc:
                logger.error("Error processing %s: %r", describe(item), exc)
                return False, None

    outcomes = await asyncio.gather(*(_guarded(item) for item in items))
    return [result for ok, result in outcomes if ok]


async def _run_job(
    store: DataStore,
    job_name: str,
    job_type: str,
    body: Callable[[], Awaitable[JobResult]],
) -> JobResult:
    """Open a ledger row, run the job body, close the row.

    If body raises, the row is intentionally left in status=running and the
    error propagates to the caller.
    """
    job_id = await asyncio.to_thread(store.jobs.start_run, job_name, job_type)
    started = time.monotonic()

    result = await body()

    result.duration_ms = int((time.monotonic() - started) * 1000)
    await asyncio.to_thread(
        store.jobs.finish_run,
        job_id, result.users_processed, result.notifications_sent, result.duration_ms,
    )
    logger.info(
        "%s finished: %d users processed, %d notifications sent",
        job_name, result.users_processed, result.notifications_sent,
    )
    return result


async def _deliver_summary(
    channels: dict[str, NotificationChannel],
    pref: NotificationPreference,
    reminder: Reminder | None,
) -> bool:
    """Deliver a synthesized summary. True if it reached at least one channel."""
    if reminder is None:
        return False
    delivered = await deliver_message(
        reminder, reminder.delivery_methods, pref, channels,
    )
    if delivered:
        logger.info(
            "%s sent to user %s via %s", reminder.title, pref.user_id, ", ".join(delivered),
        )
    return bool(delivered)


# ---------------------------------------------------------------------------
# Daily reminder
# ---------------------------------------------------------------------------


async def run_daily_reminder(
    store: DataStore,
    channels: dict[str, NotificationChannel],
    now: datetime | None = None,
) -> JobResult:
    """Send the daily summary to every eligible user."""
    now = now or datetime.now(timezone.utc)

    async def body() -> JobResult:
        prefs = await asyncio.to_thread(
            store.preferences.list_enabled, "daily_summary_enabled",
        )
        outcomes = await _process_each(
            prefs,
            lambda pref: _build_daily_for_user(store, pref, now),
            lambda pref, reminder: _deliver_summary(channels, pref, reminder),
            lambda pref: f"user {pref.user_id}",
        )
        return JobResult(
            users_processed=len(outcomes),
            notifications_sent=sum(1 for sent in outcomes if sent),
        )

    return await _run_job(store, "daily-reminder", "daily_reminder", body)


async def _build_daily_for_user(
    store: DataStore,
    pref: NotificationPreference,
    now: datetime,
) -> Reminder | None:
    """Synthesize one user's daily summary, or None if the user is not due."""
    tz_name = _zone_for(pref)
    if not is_eligible_now(now, tz_name, pref.daily_summary_time):
        return None

    ctx = await gather_daily_context(store, pref.user_id, now, tz_name)
    return Reminder(
        user_id=pref.user_id,
        title=daily_title(now, tz_name),
        message=format_daily_summary(ctx, now, tz_name),
        type=ReminderType.DAILY_SUMMARY.value,
        scheduled_for=now,
        delivery_methods=list(pref.daily_summary_methods),
    )


# ---------------------------------------------------------------------------
# Weekly review
# ---------------------------------------------------------------------------


async def run_weekly_review(
    store: DataStore,
    channels: dict[str, NotificationChannel],
    now: datetime | None = None,
) -> JobResult:
    """Send the weekly review to every user whose review day and hour match."""
    now = now or datetime.now(timezone.utc)

    async def body() -> JobResult:
        prefs = await asyncio.to_thread(
            store.preferences.list_enabled, "weekly_review_enabled",
        )
        outcomes = await _process_each(
            prefs,
            lambda pref: _build_weekly_for_user(store, pref, now),
            lambda pref, reminder: _deliver_summary(channels, pref, reminder),
            lambda pref: f"user {pref.user_id}",
        )
        return JobResult(
            users_processed=len(outcomes),
            notifications_sent=sum(1 for sent in outcomes if sent),
        )

    return await _run_job(store, "weekly-review", "weekly_review", body)


async def _build_weekly_for_user(
    store: DataStore,
    pref: NotificationPreference,
    now: datetime,
) -> Reminder | None:
    tz_name = _zone_for(pref)
    if not is_weekly_eligible_now(
        now, tz_name, pref.weekly_review_day, pref.weekly_review_time,
    ):
        return None

    ctx = await gather_weekly_context(store, pref.user_id, now, tz_name)
    return Reminder(
        user_id=pref.user_id,
        title=weekly_title(ctx.window_start, ctx.window_end),
        message=format_weekly_review(ctx, ctx.window_start, ctx.window_end),
        type=ReminderType.WEEKLY_REVIEW.value,
        scheduled_for=now,
        delivery_methods=list(pref.weekly_review_methods),
    )


# ---------------------------------------------------------------------------
# Task-due / time-block reminders
# ---------------------------------------------------------------------------


async def run_time_block_reminder(
    store: DataStore,
    channels: dict[str, NotificationChannel],
    now: datetime | None = None,
) -> JobResult:
    """Queue upcoming task and time-block reminders, then deliver pending ones."""
    now = now or datetime.now(timezone.utc)

    async def body() -> JobResult:
        task_prefs = await asyncio.to_thread(
            store.preferences.list_enabled, "task_reminders_enabled",
        )
        await _process_each(
            task_prefs,
            lambda pref: asyncio.to_thread(_plan_task_reminders, store, pref, now),
            lambda pref, planned: _queue_reminders(store, pref, planned, "task"),
            lambda pref: f"task reminders for user {pref.user_id}",
        )
        block_prefs = await asyncio.to_thread(
            store.preferences.list_enabled, "time_block_reminders_enabled",
        )
        await _process_each(
            block_prefs,
            lambda pref: asyncio.to_thread(_plan_time_block_reminders, store, pref, now),
            lambda pref, planned: _queue_reminders(store, pref, planned, "time block"),
            lambda pref: f"time block reminders for user {pref.user_id}",
        )

        pending = await asyncio.to_thread(store.reminders.list_pending, QUEUED_TYPES, now)
        outcomes = await _process_each(
            pending,
            lambda reminder: asyncio.to_thread(store.preferences.get, reminder.user_id),
            lambda reminder, pref: _dispatch_one(channels, reminder, pref),
            lambda reminder: f"reminder #{reminder.id}",
        )
        delivered = [reminder for reminder, sent in outcomes if sent]
        return JobResult(
            users_processed=len({r.user_id for r in delivered}),
            notifications_sent=len(delivered),
            reminders_processed=len(pending),
        )

    return await _run_job(store, "time-block-reminder", "time_block_reminder", body)


async def _dispatch_one(
    channels: dict[str, NotificationChannel],
    reminder: Reminder,
    pref: NotificationPreference | None,
) -> tuple[Reminder, bool]:
    sent = await dispatch_queued_reminder(reminder, pref, channels)
    return reminder, sent


def _plan_task_reminders(
    store: DataStore, pref: NotificationPreference, now: datetime,
) -> list[Reminder]:
    """Unqueued task-due reminders for tasks due within the advance window."""
    horizon = now + timedelta(hours=pref.task_reminder_advance_hours)
    tasks = store.activity.open_tasks_due_between(pref.user_id, now, horizon)
    tz_name = _zone_for(pref)
    planned = []
    for task in tasks:
        if store.reminders.exists_for_source(pref.user_id, ReminderType.TASK_DUE, task.id):
            continue
        title, message = task_due_text(task, tz_name)
        planned.append(Reminder(
            user_id=pref.user_id,
            title=title,
            message=message,
            type=ReminderType.TASK_DUE.value,
            priority=task.priority,
            scheduled_for=now,
            delivery_methods=list(pref.task_reminder_methods),
            source_id=task.id,
        ))
    return planned


def _plan_time_block_reminders(
    store: DataStore, pref: NotificationPreference, now: datetime,
) -> list[Reminder]:
    """Unqueued reminders for blocks starting within the advance window."""
    horizon = now + timedelta(minutes=pref.time_block_reminder_advance_minutes)
    blocks = store.activity.time_blocks_between(pref.user_id, now, horizon)
    tz_name = _zone_for(pref)
    planned = []
    for block in blocks:
        if store.reminders.exists_for_source(
            pref.user_id, ReminderType.TIME_BLOCK_STARTING, block.id,
        ):
            continue
        title, message = time_block_text(block, now, tz_name)
        planned.append(Reminder(
            user_id=pref.user_id,
            title=title,
            message=message,
            type=ReminderType.TIME_BLOCK_STARTING.value,
            priority="high",
            scheduled_for=now,
            delivery_methods=list(pref.time_block_reminder_methods),
            source_id=block.id,
        ))
    return planned


def _insert_all(store: DataStore, reminders: list[Reminder]) -> int:
    for reminder in reminders:
        store.reminders.insert(reminder)
    return len(reminders)


async def _queue_reminders(
    store: DataStore,
    pref: NotificationPreference,
    planned: list[Reminder],
    kind: str,
) -> int:
    queued = await asyncio.to_thread(_insert_all, store, planned)
    if queued:
        logger.info("Queued %d %s reminders for user %s", queued, kind, pref.user_id)
    return queued


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

JOBS: dict[str, Callable[..., Awaitable[JobResult]]] = {
    "daily-reminder": run_daily_reminder,
    "weekly-review": run_weekly_review,
    "time-block-reminder": run_time_block_reminder,
}
