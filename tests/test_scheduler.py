"""Tests for src.core.scheduler — the three scheduled jobs."""

import asyncio
import time

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

from src.config import settings
from src.core.scheduler import (
    JOBS,
    JobResult,
    _process_each,
    run_daily_reminder,
    run_time_block_reminder,
    run_weekly_review,
)
from src.data.models import NotificationPreference, ReminderType

# Wednesday 2025-01-15 12:30 UTC = 07:30 in New York (EST)
NOW = datetime(2025, 1, 15, 12, 30, tzinfo=timezone.utc)


def _save_pref(store, user_id, **kwargs):
    pref = NotificationPreference(user_id=user_id, **kwargs)
    store.preferences.save(pref)
    return pref


class TestJobResult:
    def test_response_shape(self):
        body = JobResult(users_processed=2, notifications_sent=1, duration_ms=40).to_response()
        assert body == {
            "success": True, "usersProcessed": 2, "notificationsSent": 1, "duration": 40,
        }

    def test_reminders_processed_included_when_set(self):
        body = JobResult(reminders_processed=3).to_response()
        assert body["remindersProcessed"] == 3

    def test_registry(self):
        assert set(JOBS) == {"daily-reminder", "weekly-review", "time-block-reminder"}


class TestProcessEach:
    @staticmethod
    async def _passthrough(item, prepared):
        return prepared

    @pytest.mark.asyncio
    async def test_failures_are_dropped(self):
        async def prepare(n):
            if n == 2:
                raise RuntimeError("boom")
            return n * 10

        results = await _process_each(
            [1, 2, 3], prepare, self._passthrough, lambda n: f"item {n}",
        )
        assert results == [10, 30]

    @pytest.mark.asyncio
    async def test_commit_failure_dropped(self):
        async def prepare(n):
            return n

        async def commit(n, prepared):
            if n == 1:
                raise RuntimeError("channel down")
            return prepared

        results = await _process_each([1, 2], prepare, commit, str)
        assert results == [2]

    @pytest.mark.asyncio
    async def test_prepare_timeout_skips_commit(self):
        committed = []

        async def prepare(n):
            if n == "slow":
                await asyncio.sleep(5)
            return n

        async def commit(n, prepared):
            committed.append(n)
            return prepared

        with patch.object(settings, "USER_TIMEOUT_SECONDS", 0.05):
            results = await _process_each(["fast", "slow"], prepare, commit, str)
        assert results == ["fast"]
        assert committed == ["fast"]

    @pytest.mark.asyncio
    async def test_commit_not_bound_by_timeout(self):
        async def prepare(n):
            return n

        async def commit(n, prepared):
            await asyncio.sleep(0.2)
            return prepared

        with patch.object(settings, "USER_TIMEOUT_SECONDS", 0.05):
            results = await _process_each(["a"], prepare, commit, str)
        assert results == ["a"]

    @pytest.mark.asyncio
    async def test_concurrency_limit(self):
        running = 0
        peak = 0

        async def prepare(n):
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1
            return n

        with patch.object(settings, "JOB_CONCURRENCY", 2):
            await _process_each(list(range(6)), prepare, self._passthrough, str)
        assert peak == 2

        peak = 0
        with patch.object(settings, "JOB_CONCURRENCY", 1):
            await _process_each(list(range(3)), prepare, self._passthrough, str)
        assert peak == 1


class TestDailyReminder:
    @pytest.mark.asyncio
    async def test_new_york_morning_summary(self, store, channels):
        _save_pref(store, "u1", timezone="America/New_York", daily_summary_time="07:00")
        store.activity.add_task(
            "u1", "Write report", priority="urgent",
            due_date=datetime(2025, 1, 15, 22, tzinfo=timezone.utc),
        )
        store.activity.add_time_block(
            "u1", "Standup",
            datetime(2025, 1, 15, 14, tzinfo=timezone.utc),
            datetime(2025, 1, 15, 15, tzinfo=timezone.utc),
        )

        result = await run_daily_reminder(store, channels, now=NOW)

        assert result.users_processed == 1
        assert result.notifications_sent == 1
        [reminder] = store.reminders.list_for_user("u1")
        assert reminder.title == "Daily Summary - 2025-01-15"
        assert reminder.type == ReminderType.DAILY_SUMMARY.value
        assert reminder.is_sent is True
        assert "• 🔥 Write report (Due: today)" in reminder.message
        assert "• 09:00-10:00: Standup" in reminder.message
        assert 'Start with: "Write report"' in reminder.message
        assert "Next scheduled: Standup at 09:00" in reminder.message

    @pytest.mark.asyncio
    async def test_new_york_overdue_and_tomorrow(self, store, channels):
        _save_pref(store, "u1", timezone="America/New_York", daily_summary_time="07:00")
        # Yesterday 15:00 local
        store.activity.add_task(
            "u1", "Pay invoice", priority="urgent",
            due_date=datetime(2025, 1, 14, 20, tzinfo=timezone.utc),
        )
        # Tomorrow 12:00 local
        store.activity.add_task(
            "u1", "Prepare slides", priority="high",
            due_date=datetime(2025, 1, 16, 17, tzinfo=timezone.utc),
        )
        store.activity.add_time_block(
            "u1", "Team sync",
            datetime(2025, 1, 15, 14, tzinfo=timezone.utc),
            datetime(2025, 1, 15, 15, tzinfo=timezone.utc),
        )

        result = await run_daily_reminder(store, channels, now=NOW)

        assert result.notifications_sent == 1
        [reminder] = store.reminders.list_for_user("u1")
        assert "📋 **Tasks (2)**" in reminder.message
        assert "• 🔥 Pay invoice (Overdue)" in reminder.message
        assert "• ⚡ Prepare slides (Due: tomorrow)" in reminder.message
        assert "• 09:00-10:00: Team sync" in reminder.message
        assert 'Start with: "Pay invoice"' in reminder.message
        assert "Next scheduled: Team sync at 09:00" in reminder.message

    @pytest.mark.asyncio
    async def test_slow_context_read_times_out_without_writing(self, store, channels):
        _save_pref(store, "slow", daily_summary_time="12:00")
        original = store.activity.open_tasks_due_before

        def slow_read(*args):
            time.sleep(0.3)
            return original(*args)

        with patch.object(store.activity, "open_tasks_due_before", side_effect=slow_read), \
                patch.object(settings, "USER_TIMEOUT_SECONDS", 0.1):
            result = await run_daily_reminder(store, channels, now=NOW)
            # Let the abandoned read thread finish
            await asyncio.sleep(0.4)

        assert result.users_processed == 0
        assert result.notifications_sent == 0
        assert store.reminders.list_for_user("slow") == []

    @pytest.mark.asyncio
    async def test_slow_delivery_is_counted_when_written(self, store, channels):
        _save_pref(store, "slow", daily_summary_time="12:00")
        original = store.reminders.insert

        def slow_insert(reminder):
            time.sleep(0.3)
            return original(reminder)

        with patch.object(store.reminders, "insert", side_effect=slow_insert), \
                patch.object(settings, "USER_TIMEOUT_SECONDS", 0.1):
            result = await run_daily_reminder(store, channels, now=NOW)

        stored = store.reminders.list_for_user("slow")
        assert result.notifications_sent == len(stored) == 1
        assert stored[0].is_sent is True

    @pytest.mark.asyncio
    async def test_not_due_user_processed_but_not_sent(self, store, channels):
        _save_pref(store, "u1", daily_summary_time="20:00")
        result = await run_daily_reminder(store, channels, now=NOW)
        assert result.users_processed == 1
        assert result.notifications_sent == 0
        assert store.reminders.list_for_user("u1") == []

    @pytest.mark.asyncio
    async def test_disabled_users_ignored(self, store, channels):
        _save_pref(store, "u1", daily_summary_enabled=False, daily_summary_time="12:00")
        result = await run_daily_reminder(store, channels, now=NOW)
        assert result.users_processed == 0

    @pytest.mark.asyncio
    async def test_one_bad_user_does_not_stop_others(self, store, channels):
        _save_pref(store, "a-broken", timezone="Mars/Olympus_Mons", daily_summary_time="12:00")
        _save_pref(store, "b-fine", daily_summary_time="12:00")
        _save_pref(store, "c-fine", daily_summary_time="13:00")

        result = await run_daily_reminder(store, channels, now=NOW)

        assert result.users_processed == 2
        assert result.notifications_sent == 2
        assert store.reminders.list_for_user("a-broken") == []
        assert len(store.reminders.list_for_user("c-fine")) == 1
        [run] = store.jobs.list_runs()
        assert run.status == "completed"
        assert run.users_processed == 2
        assert run.notifications_sent == 2

    @pytest.mark.asyncio
    async def test_channel_failure_isolated(self, store, channels):
        _save_pref(store, "a", daily_summary_time="12:00",
                   daily_summary_methods=["in_app", "telegram"], telegram_chat_id="1")
        _save_pref(store, "b", daily_summary_time="12:00")
        telegram = AsyncMock()
        telegram.send.side_effect = RuntimeError("telegram down")
        channels["telegram"] = telegram

        result = await run_daily_reminder(store, channels, now=NOW)

        assert result.users_processed == 1
        assert result.notifications_sent == 1
        # The in-app row for "a" was written before the failing channel ran
        assert len(store.reminders.list_for_user("a")) == 1

    @pytest.mark.asyncio
    async def test_no_usable_channel_not_counted(self, store, channels):
        _save_pref(store, "u1", daily_summary_time="12:00", daily_summary_methods=["email"])
        result = await run_daily_reminder(store, channels, now=NOW)
        assert result.users_processed == 1
        assert result.notifications_sent == 0

    @pytest.mark.asyncio
    async def test_top_level_failure_leaves_ledger_running(self, store, channels):
        with patch.object(
            store.preferences, "list_enabled", side_effect=RuntimeError("db gone"),
        ):
            with pytest.raises(RuntimeError, match="db gone"):
                await run_daily_reminder(store, channels, now=NOW)
        [run] = store.jobs.list_runs()
        assert run.status == "running"
        assert run.job_name == "daily-reminder"


class TestWeeklyReview:
    @pytest.mark.asyncio
    async def test_sent_on_configured_day(self, store, channels):
        sunday_evening = datetime(2025, 1, 19, 18, 15, tzinfo=timezone.utc)
        _save_pref(store, "u1", weekly_review_day=0, weekly_review_time="18:00")
        store.activity.add_task(
            "u1", "Ship it", priority="high", status="completed",
            updated_at=datetime(2025, 1, 14, tzinfo=timezone.utc),
        )

        result = await run_weekly_review(store, channels, now=sunday_evening)

        assert result.notifications_sent == 1
        [reminder] = store.reminders.list_for_user("u1")
        assert reminder.title == "Weekly Review - Jan 19 to Jan 25"
        assert reminder.type == ReminderType.WEEKLY_REVIEW.value

    @pytest.mark.asyncio
    async def test_skipped_on_other_days(self, store, channels):
        _save_pref(store, "u1", weekly_review_day=0, weekly_review_time="12:00")
        result = await run_weekly_review(store, channels, now=NOW)
        assert result.users_processed == 1
        assert result.notifications_sent == 0
        [run] = store.jobs.list_runs()
        assert run.job_type == "weekly_review"
        assert run.status == "completed"


class TestTimeBlockReminder:
    @pytest.mark.asyncio
    async def test_queues_and_delivers_once(self, store, channels):
        _save_pref(store, "u1")
        store.activity.add_task("u1", "Pay rent", due_date=NOW + timedelta(hours=3))
        store.activity.add_task("u1", "Far away", due_date=NOW + timedelta(days=3))
        store.activity.add_time_block(
            "u1", "Gym", NOW + timedelta(minutes=10), NOW + timedelta(minutes=70),
        )
        store.activity.add_time_block(
            "u1", "Later", NOW + timedelta(hours=2), NOW + timedelta(hours=3),
        )

        first = await run_time_block_reminder(store, channels, now=NOW)

        assert first.reminders_processed == 2
        assert first.notifications_sent == 2
        assert first.users_processed == 1
        titles = {r.title for r in store.reminders.list_for_user("u1")}
        assert titles == {"Task due: Pay rent", "Starting soon: Gym"}
        assert all(r.is_sent for r in store.reminders.list_for_user("u1"))

        second = await run_time_block_reminder(store, channels, now=NOW + timedelta(minutes=1))
        assert second.reminders_processed == 0
        assert second.notifications_sent == 0
        assert len(store.reminders.list_for_user("u1")) == 2

    @pytest.mark.asyncio
    async def test_dispatches_pending_from_elsewhere(self, store, channels):
        from src.data.models import Reminder

        store.reminders.insert(Reminder(
            user_id="u9", title="Queued", message="m",
            type=ReminderType.TASK_DUE.value, scheduled_for=NOW - timedelta(minutes=5),
        ))
        store.reminders.insert(Reminder(
            user_id="u9", title="Future", message="m",
            type=ReminderType.TASK_DUE.value, scheduled_for=NOW + timedelta(hours=1),
        ))

        result = await run_time_block_reminder(store, channels, now=NOW)

        assert result.reminders_processed == 1
        assert result.notifications_sent == 1
        sent = [r.title for r in store.reminders.list_for_user("u9") if r.is_sent]
        assert sent == ["Queued"]

    @pytest.mark.asyncio
    async def test_disabled_categories_not_queued(self, store, channels):
        _save_pref(store, "u1", task_reminders_enabled=False, time_block_reminders_enabled=False)
        store.activity.add_task("u1", "Pay rent", due_date=NOW + timedelta(hours=3))
        result = await run_time_block_reminder(store, channels, now=NOW)
        assert result.reminders_processed == 0
        assert store.reminders.list_for_user("u1") == []

    @pytest.mark.asyncio
    async def test_ledger_completed(self, store, channels):
        result = await run_time_block_reminder(store, channels, now=NOW)
        [run] = store.jobs.list_runs("completed")
        assert run.job_name == "time-block-reminder"
        assert run.execution_duration_ms == result.duration_ms

    @pytest.mark.asyncio
    async def test_slow_planning_queues_nothing(self, store, channels):
        _save_pref(store, "u1", time_block_reminders_enabled=False)
        store.activity.add_task("u1", "Pay rent", due_date=NOW + timedelta(hours=3))
        original = store.activity.open_tasks_due_between

        def slow_read(*args):
            time.sleep(0.3)
            return original(*args)

        with patch.object(store.activity, "open_tasks_due_between", side_effect=slow_read), \
                patch.object(settings, "USER_TIMEOUT_SECONDS", 0.1):
            result = await run_time_block_reminder(store, channels, now=NOW)
            await asyncio.sleep(0.4)

        assert result.reminders_processed == 0
        assert store.reminders.list_for_user("u1") == []
