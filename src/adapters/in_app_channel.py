"""In-app notification channel — implements NotificationChannel.

The only channel with a real side effect: the reminder row itself is the
in-app notification the dashboard shows.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from src.data.models import Channel

if TYPE_CHECKING:
    from src.data.db import ReminderDB
    from src.data.models import NotificationPreference, Reminder

logger = logging.getLogger(__name__)


class InAppChannel:
    """Stores new reminders as sent, or flips queued ones from unsent to sent."""

    name = Channel.IN_APP.value

    def __init__(self, reminders: ReminderDB) -> None:
        self._reminders = reminders

    async def send(
        self, reminder: Reminder, preference: NotificationPreference | None = None,
    ) -> bool:
        now = datetime.now(timezone.utc)

        if reminder.id is None:
            reminder.is_sent = True
            reminder.sent_at = now
            await asyncio.to_thread(self._reminders.insert, reminder)
            return True

        if reminder.is_sent:
            logger.debug("Reminder #%d already sent, skipping", reminder.id)
            return False

        transitioned = await asyncio.to_thread(
            self._reminders.mark_sent, reminder.id, now,
        )
        if transitioned:
            reminder.is_sent = True
            reminder.sent_at = now
        else:
            logger.debug("Reminder #%d was sent concurrently, skipping", reminder.id)
        return transitioned
