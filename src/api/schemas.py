"""Request/response bodies for the settings and dashboard endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator

ChannelName = Literal["in_app", "email", "push", "telegram"]
HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class PreferencesIn(BaseModel):
    daily_summary_enabled: bool = True
    daily_summary_time: str = Field(default="07:00", pattern=HHMM_PATTERN)
    daily_summary_methods: list[ChannelName] = ["in_app"]
    weekly_review_enabled: bool = True
    weekly_review_day: int = Field(default=0, ge=0, le=6)
    weekly_review_time: str = Field(default="18:00", pattern=HHMM_PATTERN)
    weekly_review_methods: list[ChannelName] = ["in_app"]
    task_reminders_enabled: bool = True
    task_reminder_advance_hours: int = Field(default=24, ge=1)
    task_reminder_methods: list[ChannelName] = ["in_app"]
    time_block_reminders_enabled: bool = True
    time_block_reminder_advance_minutes: int = Field(default=15, ge=1)
    time_block_reminder_methods: list[ChannelName] = ["in_app"]
    pomodoro_suggestions_enabled: bool = True
    pomodoro_suggestion_interval_hours: int = Field(default=2, ge=1)
    break_reminders_enabled: bool = True
    break_reminder_interval_minutes: int = Field(default=90, ge=1)
    timezone: str = "UTC"
    email_address: str | None = None
    telegram_chat_id: str | None = None
    push_subscription: dict | None = None

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {v!r}") from exc
        return v


class PreferencesOut(PreferencesIn):
    model_config = ConfigDict(from_attributes=True)

    user_id: str


class ReminderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    title: str
    message: str
    type: str
    priority: str
    scheduled_for: datetime
    is_sent: bool
    sent_at: datetime | None = None
    is_read: bool
    delivery_methods: list[str]
    created_at: datetime | None = None
