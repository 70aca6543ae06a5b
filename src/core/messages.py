"""Message synthesis — pure formatting of reminder text.

Turns a UserContext into the daily summary or weekly review text, and builds
the short canned texts for queued task / time-block reminders.

Rounding rules: days remaining use ceiling (a deadline later today is
"1 day left", never 0), progress bars use floor, and displayed decimals and
percentages round half up.

No I/O: this module only transforms data.
"""

from __future__ import annotations

import math
from collections import Counter
from datetime import date, datetime, timedelta, timezone
from typing import TYPE_CHECKING

from src.core.eligibility import to_local

if TYPE_CHECKING:
    from src.core.context import UserContext
    from src.data.models import Reminder, Task, TimeBlock

PRIORITY_RANK = {"low": 0, "medium": 1, "high": 2, "urgent": 3}
PRIORITY_FLAG = {"urgent": "🔥 ", "high": "⚡ "}

MAX_DAILY_TASKS = 5
MAX_DAILY_BLOCKS = 5
MAX_DAILY_HABITS = 3
MAX_ACHIEVEMENTS = 3
MAX_WEEKLY_GOALS = 3
DEFAULT_SESSION_MINUTES = 25
BAR_WIDTH = 10
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Small helpers
# ---------------------------------------------------------------------------


def round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def progress_bar(pct: float) -> str:
    """10-character bar: one █ per full 10%, ░ for the rest."""
    pct = max(0, min(100, pct or 0))
    filled = math.floor(pct / 10)
    return "█" * filled + "░" * (BAR_WIDTH - filled)


def days_remaining(target: datetime, now: datetime) -> int:
    """Whole days until target, rounded up."""
    return math.ceil((target - now).total_seconds() / 86400)


def format_days_left(days: int) -> str:
    if days <= 0:
        return "overdue"
    if days == 1:
        return "1 day left"
    return f"{days} days left"


def mood_emoji(avg: float) -> str:
    if avg >= 4.5:
        return "😄"
    if avg >= 3.5:
        return "😊"
    if avg >= 2.5:
        return "😐"
    return "😔"


def _short_date(day: date) -> str:
    return f"{day:%b} {day.day}"


def _hhmm(moment: datetime, tz_name: str | None) -> str:
    return to_local(moment, tz_name).strftime("%H:%M")


def _due_text(task: Task, now: datetime, tz_name: str | None) -> str:
    if task.due_date is None:
        return ""
    if task.due_date < now:
        return " (Overdue)"
    today = to_local(now, tz_name).date()
    due_day = to_local(task.due_date, tz_name).date()
    if due_day == today:
        return " (Due: today)"
    if due_day == today + timedelta(days=1):
        return " (Due: tomorrow)"
    return f" (Due: {_short_date(due_day)})"


def focus_task(tasks: list[Task]) -> Task | None:
    """Highest-priority open task; earlier entries (earlier due) win ties."""
    if not tasks:
        return None
    return max(tasks, key=lambda t: PRIORITY_RANK.get(t.priority, 0))


# ---------------------------------------------------------------------------
# Daily summary
# ---------------------------------------------------------------------------


def daily_title(now: datetime, tz_name: str | None) -> str:
    return f"Daily Summary - {to_local(now, tz_name).date().isoformat()}"


def format_daily_summary(ctx: UserContext, now: datetime, tz_name: str | None) -> str:
    local_now = to_local(now, tz_name)
    lines = [
        f"Good morning! Here's your daily summary for "
        f"{local_now:%A}, {_short_date(local_now.date())}:",
        "",
    ]

    if ctx.tasks:
        lines.append(f"📋 **Tasks ({len(ctx.tasks)})**")
        for task in ctx.tasks[:MAX_DAILY_TASKS]:
            flag = PRIORITY_FLAG.get(task.priority, "")
            lines.append(f"• {flag}{task.title}{_due_text(task, now, tz_name)}")
        if len(ctx.tasks) > MAX_DAILY_TASKS:
            lines.append(f"• ... and {len(ctx.tasks) - MAX_DAILY_TASKS} more")
        lines.append("")

    if ctx.time_blocks:
        lines.append(f"⏰ **Today's Schedule ({len(ctx.time_blocks)} blocks)**")
        for block in ctx.time_blocks[:MAX_DAILY_BLOCKS]:
            lines.append(
                f"• {_hhmm(block.start_time, tz_name)}-{_hhmm(block.end_time, tz_name)}: "
                f"{block.title}"
            )
        if len(ctx.time_blocks) > MAX_DAILY_BLOCKS:
            lines.append(f"• ... and {len(ctx.time_blocks) - MAX_DAILY_BLOCKS} more")
        lines.append("")

    if ctx.habits:
        lines.append(f"🎯 **Active Habits ({len(ctx.habits)})**")
        for habit in ctx.habits[:MAX_DAILY_HABITS]:
            lines.append(f"• {habit.name} ({habit.current_streak} day streak)")
        lines.append("")

    if ctx.goals:
        lines.append("🎖️ **Upcoming Goal Deadlines**")
        for goal in ctx.goals:
            if goal.target_date is not None:
                left = format_days_left(days_remaining(goal.target_date, now))
                lines.append(
                    f"• {goal.title} ({left}) - {goal.progress_percentage or 0}% complete"
                )
            else:
                lines.append(f"• {goal.title} - {goal.progress_percentage or 0}% complete")
        lines.append("")

    lines.append("💪 **Focus for Today:**")
    top = focus_task(ctx.tasks)
    if top is not None:
        lines.append(f'Start with: "{top.title}"')
    upcoming = [b for b in ctx.time_blocks if b.start_time >= now]
    if upcoming:
        nxt = upcoming[0]
        lines.append(f"Next scheduled: {nxt.title} at {_hhmm(nxt.start_time, tz_name)}")
    if top is None and not upcoming:
        lines.append("A clear day. Pick one thing that matters and start there.")

    lines.append("")
    lines.append("Have a productive day! 🚀")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Weekly review
# ---------------------------------------------------------------------------


def _week_label(week_start: datetime, week_end: datetime) -> tuple[str, str]:
    last_day = (week_end - timedelta(days=1)).date()
    return _short_date(week_start.date()), _short_date(last_day)


def weekly_title(week_start: datetime, week_end: datetime) -> str:
    first, last = _week_label(week_start, week_end)
    return f"Weekly Review - {first} to {last}"


def top_achievements(tasks: list[Task]) -> list[Task]:
    """Up to 3 completed tasks: high/urgent ones if any, else the most recent."""
    recent = sorted(
        tasks,
        key=lambda t: t.updated_at or _EPOCH,
        reverse=True,
    )
    important = [t for t in recent if t.priority in ("high", "urgent")]
    return (important or recent)[:MAX_ACHIEVEMENTS]


def average_mood(ctx: UserContext) -> float | None:
    ratings = [e.mood_rating for e in ctx.journal_entries if e.mood_rating is not None]
    if not ratings:
        return None
    return sum(ratings) / len(ratings)


def format_weekly_review(ctx: UserContext, week_start: datetime, week_end: datetime) -> str:
    first, last = _week_label(week_start, week_end)
    completed = len(ctx.tasks)
    sessions = len(ctx.pomodoro_sessions)
    lines = [f"🗓️ **Weekly Review** ({first} - {last})", ""]

    lines.append("📊 **Productivity Summary**")
    lines.append(f"• Tasks Completed: {completed}")
    lines.append(f"• Time Blocks Scheduled: {len(ctx.time_blocks)}")
    lines.append(f"• Pomodoro Sessions: {sessions}")
    if sessions:
        total_minutes = sum(
            s.duration_minutes or DEFAULT_SESSION_MINUTES for s in ctx.pomodoro_sessions
        )
        lines.append(f"• Total Focus Time: {round_half_up(total_minutes / 60, 1):g} hours")
    lines.append("")

    if completed:
        lines.append("🏆 **Top Achievements**")
        for task in top_achievements(ctx.tasks):
            lines.append(f"• {task.title}")
        lines.append("")

    if ctx.habit_entries:
        lines.append("🎯 **Habit Performance**")
        counts = Counter(e.habit_name or "Unknown Habit" for e in ctx.habit_entries)
        for name, count in counts.items():
            pct = int(round_half_up(count / 7 * 100))
            lines.append(f"• {name}: {count}/7 days ({pct}%)")
        lines.append("")

    avg = average_mood(ctx)
    if avg is not None:
        lines.append("😊 **Well-being**")
        lines.append(f"• Average Mood: {round_half_up(avg, 1):.1f}/5")
        lines.append(f"• Journal Entries: {len(ctx.journal_entries)}")
        lines.append(f"• Overall feeling: {mood_emoji(avg)}")
        lines.append("")

    active_goals = [g for g in ctx.goals if g.status == "active"]
    if active_goals:
        lines.append("🎖️ **Goals Progress**")
        for goal in active_goals[:MAX_WEEKLY_GOALS]:
            progress = goal.progress_percentage or 0
            lines.append(f"• {goal.title}: {progress_bar(progress)} {progress}%")
        lines.append("")

    lines.append("💡 **Insights for Next Week**")
    lines.append(f"• {recommendation(completed)}")
    if sessions < 5:
        lines.append("• Consider using the Pomodoro technique for better focus")
    if not ctx.habit_entries:
        lines.append("• Start tracking your daily habits for better consistency")

    lines.append("")
    lines.append("Keep up the great work! 🚀")
    return "\n".join(lines)


def recommendation(completed: int) -> str:
    if completed == 0:
        return "Focus on completing at least 3 tasks this week"
    if completed < 5:
        return f"Great start! Try to complete {completed + 2} tasks next week"
    return f"Excellent productivity! You completed {completed} tasks"


# ---------------------------------------------------------------------------
# Queued reminders
# ---------------------------------------------------------------------------


def task_due_text(task: Task, tz_name: str | None) -> tuple[str, str]:
    """(title, message) for a task coming due."""
    flag = PRIORITY_FLAG.get(task.priority, "")
    local_due = to_local(task.due_date, tz_name)
    return (
        f"Task due: {task.title}",
        f'{flag}"{task.title}" is due {_short_date(local_due.date())} at '
        f"{local_due:%H:%M}.",
    )


def time_block_text(block: TimeBlock, now: datetime, tz_name: str | None) -> tuple[str, str]:
    """(title, message) for a time block about to start."""
    minutes = max(0, math.ceil((block.start_time - now).total_seconds() / 60))
    return (
        f"Starting soon: {block.title}",
        f"{block.title} starts at {_hhmm(block.start_time, tz_name)} "
        f"(in {minutes} min) and runs until {_hhmm(block.end_time, tz_name)}.",
    )


def telegram_text(reminder: Reminder) -> str:
    return f"🔔 {reminder.title}\n\n{reminder.message}"
