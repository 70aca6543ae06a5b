"""
LifeOS Reminders — Delivery Fan-out.

Routes a reminder to each enabled delivery channel. The in-app channel always
runs first: for a synthesized message it stores the row, for a queued
reminder it performs the one-time unsent → sent transition that guards
against double delivery.

There is no retry: a channel that raises aborts the remaining channels for
this reminder and the error surfaces at the per-user boundary.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.data.models import Channel

if TYPE_CHECKING:
    from src.data.models import NotificationPreference, Reminder
    from src.ports.notification_port import NotificationChannel

logger = logging.getLogger(__name__)


def _in_app_first(methods: list[str]) -> list[str]:
    unique = list(dict.fromkeys(methods))
    return sorted(unique, key=lambda m: m != Channel.IN_APP.value)


async def deliver_message(
    reminder: Reminder,
    methods: list[str],
    preference: NotificationPreference | None,
    channels: dict[str, NotificationChannel],
) -> list[str]:
    """Send a freshly synthesized reminder over every enabled channel.

    The in-app row is only written when in_app is among the methods.
    Returns the names of the channels that delivered.
    """
    delivered: list[str] = []
    for method in _in_app_first(methods):
        channel = channels.get(method)
        if channel is None:
            logger.warning("Unknown delivery channel %r for user %s", method, reminder.user_id)
            continue
        if await channel.send(reminder, preference):
            delivered.append(method)
    return delivered


async def dispatch_queued_reminder(
    reminder: Reminder,
    preference: NotificationPreference | None,
    channels: dict[str, NotificationChannel],
) -> bool:
    """Deliver a stored reminder once.

    Returns False without touching any channel if the reminder had already
    been sent (by an earlier or overlapping run).
    """
    in_app = channels[Channel.IN_APP.value]
    if not await in_app.send(reminder, preference):
        return False

    for method in _in_app_first(reminder.delivery_methods):
        if method == Channel.IN_APP.value:
            continue
        channel = channels.get(method)
        if channel is None:
            logger.warning("Unknown delivery channel %r on reminder #%s", method, reminder.id)
            continue
        await channel.send(reminder, preference)

    logger.info("Reminder #%s delivered to user %s", reminder.id, reminder.user_id)
    return True
