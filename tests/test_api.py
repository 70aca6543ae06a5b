"""Tests for src.api.app — job endpoints and consumer contracts."""

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from src.api.app import CORS_HEADERS, create_app
from src.core.scheduler import JobResult
from src.data.models import NotificationPreference, Reminder, ReminderType


@pytest.fixture
def client(store, channels):
    app = create_app(store_factory=lambda: store, channels_factory=lambda s: channels)
    return TestClient(app)


def _assert_cors(response):
    assert response.headers["access-control-allow-origin"] == "*"
    assert response.headers["access-control-allow-headers"] == CORS_HEADERS[
        "Access-Control-Allow-Headers"
    ]


class TestJobEndpoints:
    @pytest.mark.parametrize("path", ["/daily-reminder", "/weekly-review", "/time-block-reminder"])
    def test_options_preflight(self, client, store, path):
        response = client.options(path)
        assert response.status_code == 200
        assert response.text == "ok"
        _assert_cors(response)
        assert store.jobs.list_runs() == []

    @pytest.mark.parametrize("method", ["GET", "POST"])
    def test_daily_reminder_success(self, client, store, method):
        response = client.request(method, "/daily-reminder")
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["usersProcessed"] == 0
        assert body["notificationsSent"] == 0
        assert isinstance(body["duration"], int)
        _assert_cors(response)
        assert len(store.jobs.list_runs("completed")) == 1

    def test_time_block_reports_reminders_processed(self, client):
        body = client.post("/time-block-reminder").json()
        assert body["remindersProcessed"] == 0

    def test_failure_returns_500(self, client, store):
        with patch.object(
            store.preferences, "list_enabled", side_effect=RuntimeError("store unavailable"),
        ):
            response = client.post("/weekly-review")
        assert response.status_code == 500
        assert response.json() == {"error": "store unavailable"}
        _assert_cors(response)
        [run] = store.jobs.list_runs()
        assert run.status == "running"

    def test_uses_registered_job(self, store, channels):
        fake = AsyncMock(return_value=JobResult(users_processed=4, notifications_sent=3))
        with patch.dict("src.api.app.JOBS", {"daily-reminder": fake}):
            app = create_app(store_factory=lambda: store, channels_factory=lambda s: channels)
        body = TestClient(app).post("/daily-reminder").json()
        assert body["usersProcessed"] == 4
        fake.assert_awaited_once_with(store, channels)


class TestPreferencesEndpoints:
    def test_get_creates_defaults(self, client, store):
        response = client.get("/preferences/u1")
        assert response.status_code == 200
        body = response.json()
        assert body["user_id"] == "u1"
        assert body["daily_summary_time"] == "07:00"
        assert body["weekly_review_methods"] == ["in_app"]
        assert store.preferences.get("u1") is not None

    def test_put_saves(self, client, store):
        payload = {
            "daily_summary_time": "08:15",
            "daily_summary_methods": ["in_app", "email"],
            "timezone": "Europe/Berlin",
            "email_address": "u1@example.com",
        }
        response = client.put("/preferences/u1", json=payload)
        assert response.status_code == 200
        saved = store.preferences.get("u1")
        assert saved.daily_summary_time == "08:15"
        assert saved.daily_summary_methods == ["in_app", "email"]
        assert saved.timezone == "Europe/Berlin"

    @pytest.mark.parametrize("payload", [
        {"daily_summary_time": "8am"},
        {"weekly_review_day": 9},
        {"daily_summary_methods": ["sms"]},
        {"timezone": "Not/AZone"},
    ])
    def test_put_rejects_invalid(self, client, store, payload):
        response = client.put("/preferences/u1", json=payload)
        assert response.status_code == 422
        assert store.preferences.get("u1") is None


class TestReminderEndpoints:
    def _insert(self, store, scheduled_for, user_id="u1"):
        return store.reminders.insert(Reminder(
            user_id=user_id, title="T", message="M",
            type=ReminderType.DAILY_SUMMARY.value, scheduled_for=scheduled_for,
            is_sent=True, sent_at=scheduled_for,
        ))

    def test_list_and_dismiss(self, client, store):
        now = datetime.now(timezone.utc)
        first = self._insert(store, now)
        second = self._insert(store, now)

        body = client.get("/reminders/u1").json()
        assert [r["id"] for r in body] == [second.id, first.id]

        response = client.post(f"/reminders/{first.id}/read")
        assert response.status_code == 200
        assert response.json() == {"success": True}

        unread = client.get("/reminders/u1", params={"unread_only": True}).json()
        assert [r["id"] for r in unread] == [second.id]

    def test_today_filter(self, client, store):
        now = datetime.now(timezone.utc)
        store.preferences.save(NotificationPreference(user_id="u1"))
        self._insert(store, now - timedelta(days=2))
        today = self._insert(store, now)

        body = client.get("/reminders/u1", params={"today": True}).json()
        assert [r["id"] for r in body] == [today.id]

    def test_dismiss_missing_is_404(self, client):
        assert client.post("/reminders/999/read").status_code == 404
