"""
LifeOS Reminders — HTTP interface.

Three job endpoints for the external scheduler (daily-reminder,
weekly-review, time-block-reminder) plus the two consumer contracts the
settings screen and the notification dashboard rely on.

Job endpoints accept any method; OPTIONS answers the CORS preflight without
running anything. The data store and channels are built per request from
factories on app.state, so tests can swap them.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from src.api.schemas import PreferencesIn, PreferencesOut, ReminderOut
from src.core.context import daily_window
from src.core.scheduler import JOBS
from src.data.db import DataStore
from src.data.models import NotificationPreference

if TYPE_CHECKING:
    from src.ports.notification_port import NotificationChannel

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}
_JOB_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def get_store(request: Request) -> DataStore:
    """Open a store for this request."""
    return request.app.state.store_factory()


def _job_endpoint(job_name: str):
    job = JOBS[job_name]

    async def endpoint(request: Request) -> Response:
        if request.method == "OPTIONS":
            return PlainTextResponse("ok", headers=CORS_HEADERS)

        try:
            store = get_store(request)
            channels = request.app.state.channels_factory(store)
            result = await job(store, channels)
        except Exception as exc:
            logger.error("%s error: %s", job_name, exc)
            return JSONResponse(
                {"error": str(exc)}, status_code=500, headers=CORS_HEADERS,
            )
        return JSONResponse(result.to_response(), headers=CORS_HEADERS)

    endpoint.__name__ = job_name.replace("-", "_")
    return endpoint


def create_app(
    store_factory: Callable[[], DataStore] | None = None,
    channels_factory: Callable[[DataStore], dict[str, NotificationChannel]] | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        store_factory: Returns a DataStore. Defaults to the SQLite store at
                       DATABASE_PATH.
        channels_factory: Builds delivery channels for a store. Defaults to
                          create_channels.
    """
    if store_factory is None:
        from src.data.db import open_store
        store_factory = open_store

    if channels_factory is None:
        from src.adapters.channel_factory import create_channels
        channels_factory = create_channels

    app = FastAPI(
        title="LifeOS Reminders",
        description="Scheduled daily summaries, weekly reviews and reminders",
        version="1.0.0",
    )
    app.state.store_factory = store_factory
    app.state.channels_factory = channels_factory

    # Scheduled jobs
    for job_name in JOBS:
        app.add_api_route(
            f"/{job_name}", _job_endpoint(job_name), methods=_JOB_METHODS,
        )

    # Settings screen
    @app.get("/preferences/{user_id}", response_model=PreferencesOut)
    def read_preferences(user_id: str, store: DataStore = Depends(get_store)):
        return store.preferences.get_or_create(user_id)

    @app.put("/preferences/{user_id}", response_model=PreferencesOut)
    def save_preferences(
        user_id: str, body: PreferencesIn, store: DataStore = Depends(get_store),
    ):
        pref = NotificationPreference(user_id=user_id, **body.model_dump())
        try:
            return store.preferences.save(pref)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc))

    # Notification dashboard
    @app.get("/reminders/{user_id}", response_model=list[ReminderOut])
    def list_reminders(
        user_id: str,
        unread_only: bool = False,
        today: bool = False,
        store: DataStore = Depends(get_store),
    ):
        since = until = None
        if today:
            pref = store.preferences.get(user_id)
            tz_name = pref.timezone if pref else None
            since, until = daily_window(datetime.now(timezone.utc), tz_name)
        return store.reminders.list_for_user(
            user_id, unread_only=unread_only, since=since, until=until,
        )

    @app.post("/reminders/{reminder_id}/read")
    def dismiss_reminder(reminder_id: int, store: DataStore = Depends(get_store)):
        if not store.reminders.mark_read(reminder_id):
            raise HTTPException(status_code=404, detail="Reminder not found")
        return {"success": True}

    logger.info("HTTP app built with jobs: %s", ", ".join(JOBS))
    return app
