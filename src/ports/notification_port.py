"""Notification port — abstract interface for delivery channels.

Core modules depend on this protocol, never on a specific messaging provider.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from src.data.models import NotificationPreference, Reminder


class NotificationChannel(Protocol):
    """One transport for a notification: in_app, email, push or telegram."""

    name: str

    async def send(
        self, reminder: Reminder, preference: NotificationPreference | None,
    ) -> bool:
        """Deliver the reminder. Returns False when there was nothing to do."""
        ...
