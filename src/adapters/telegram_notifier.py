"""Telegram delivery channel — implements NotificationChannel.

Wraps a telegram.Bot instance. Without a bot (no TELEGRAM_BOT_TOKEN) the
channel only logs what it would have sent.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from telegram import Bot

from src.core.messages import telegram_text
from src.data.models import Channel

if TYPE_CHECKING:
    from src.data.models import NotificationPreference, Reminder

logger = logging.getLogger(__name__)


class TelegramChannel:
    """Telegram implementation of NotificationChannel."""

    name = Channel.TELEGRAM.value

    def __init__(self, bot: Bot | None = None) -> None:
        self._bot = bot

    async def send(
        self, reminder: Reminder, preference: NotificationPreference | None,
    ) -> bool:
        chat_id = preference.telegram_chat_id if preference else None
        if not chat_id:
            logger.debug("No Telegram chat id for user %s, skipping", reminder.user_id)
            return False

        if self._bot is None:
            logger.info("Would send Telegram message to %s: %s", chat_id, reminder.title)
            return True

        await self._bot.send_message(chat_id=chat_id, text=telegram_text(reminder))
        logger.info("Telegram message sent to %s: %s", chat_id, reminder.title)
        return True
