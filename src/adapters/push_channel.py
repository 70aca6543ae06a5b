"""Web push delivery channel — implements NotificationChannel.

Log-only: this is where a web-push provider call would go once one is
chosen. A user without a stored subscription is skipped.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.data.models import Channel

if TYPE_CHECKING:
    from src.data.models import NotificationPreference, Reminder

logger = logging.getLogger(__name__)


class PushChannel:
    """Placeholder push implementation of NotificationChannel."""

    name = Channel.PUSH.value

    async def send(
        self, reminder: Reminder, preference: NotificationPreference | None,
    ) -> bool:
        subscription = preference.push_subscription if preference else None
        if not subscription:
            logger.debug("No push subscription for user %s, skipping", reminder.user_id)
            return False

        logger.info(
            "Would send push notification to %s: %s",
            subscription.get("endpoint", "(no endpoint)"), reminder.title,
        )
        return True
