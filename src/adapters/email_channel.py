"""Email delivery channel via the Resend HTTP API — implements NotificationChannel.

Without an API key the channel only logs what it would have sent, so a
missing provider never counts as a failure.
"""

from __future__ import annotations

import html
import logging
from typing import TYPE_CHECKING

import httpx

from src.data.models import Channel

if TYPE_CHECKING:
    from src.data.models import NotificationPreference, Reminder

logger = logging.getLogger(__name__)

_RESEND_URL = "https://api.resend.com/emails"
_TIMEOUT_SECONDS = 10


def render_email_html(reminder: Reminder) -> str:
    """Minimal HTML body: title, message with line breaks kept, footer."""
    body = html.escape(reminder.message).replace("\n", "<br>")
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        f"<h2>{html.escape(reminder.title)}</h2>"
        f"<p>{body}</p>"
        "<hr><p><small>This is an automated reminder from LifeOS Assistant.</small></p>"
        "</div>"
    )


class EmailChannel:
    """Resend-backed implementation of NotificationChannel."""

    name = Channel.EMAIL.value

    def __init__(self, api_key: str = "", sender: str = "") -> None:
        self._api_key = api_key
        self._sender = sender

    async def send(
        self, reminder: Reminder, preference: NotificationPreference | None,
    ) -> bool:
        address = preference.email_address if preference else None
        if not address:
            logger.debug("No email address for user %s, skipping", reminder.user_id)
            return False

        if not self._api_key:
            logger.info("Would send email to %s: %s", address, reminder.title)
            return True

        async with httpx.AsyncClient(timeout=_TIMEOUT_SECONDS) as client:
            resp = await client.post(
                _RESEND_URL,
                json={
                    "from": self._sender,
                    "to": address,
                    "subject": reminder.title,
                    "html": render_email_html(reminder),
                },
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
            resp.raise_for_status()
        logger.info("Email sent to %s: %s", address, reminder.title)
        return True
