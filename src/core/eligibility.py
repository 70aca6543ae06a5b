"""Reminder eligibility — pure time-window logic.

Decides whether a user's daily summary or weekly review should fire on this
trigger, by comparing the trigger instant (converted into the user's
timezone) against the configured "HH:MM" with a ±1 hour tolerance.

Hours are compared as plain integers, so the window does not wrap around
midnight: a reminder configured for 23:00 is not eligible at 00:xx and one
configured for 00:00 is not eligible at 23:xx.

No I/O: this module only transforms data.
"""

from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

TOLERANCE_HOURS = 1


def parse_hour_minute(raw: str) -> tuple[int, int]:
    """Split an "HH:MM" string into (hour, minute).

    Raises ValueError on malformed input.
    """
    if not isinstance(raw, str) or ":" not in raw:
        raise ValueError(f"Expected HH:MM, got {raw!r}")
    hour_text, minute_text = raw.split(":", 1)
    hour, minute = int(hour_text), int(minute_text[:2])
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Hour/minute out of range: {raw!r}")
    return hour, minute


def user_zone(tz_name: str | None) -> ZoneInfo:
    """Resolve an IANA name, treating an empty value as UTC.

    Unknown names raise zoneinfo.ZoneInfoNotFoundError.
    """
    return ZoneInfo(tz_name or "UTC")


def to_local(now_utc: datetime, tz_name: str | None) -> datetime:
    """Convert an instant into the user's wall-clock time."""
    if now_utc.tzinfo is None:
        now_utc = now_utc.replace(tzinfo=timezone.utc)
    return now_utc.astimezone(user_zone(tz_name))


def sunday_weekday(local: datetime) -> int:
    """Day of week with 0 = Sunday … 6 = Saturday."""
    return (local.weekday() + 1) % 7


def is_eligible_now(now_utc: datetime, tz_name: str | None, configured: str) -> bool:
    """True when the local hour is within one hour of the configured hour."""
    configured_hour, _ = parse_hour_minute(configured)
    local_hour = to_local(now_utc, tz_name).hour
    return abs(local_hour - configured_hour) <= TOLERANCE_HOURS


def is_weekly_eligible_now(
    now_utc: datetime,
    tz_name: str | None,
    configured_day: int,
    configured: str,
) -> bool:
    """Weekly variant: the local day must match before the hour is checked."""
    if sunday_weekday(to_local(now_utc, tz_name)) != configured_day:
        return False
    return is_eligible_now(now_utc, tz_name, configured)
