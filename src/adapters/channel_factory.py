"""Delivery channel factory — builds the channel registry from config."""

from __future__ import annotations

from typing import TYPE_CHECKING

from src.config import settings

if TYPE_CHECKING:
    from src.config import Settings
    from src.data.db import DataStore
    from src.ports.notification_port import NotificationChannel


def create_channels(
    store: DataStore, config: Settings | None = None,
) -> dict[str, NotificationChannel]:
    """Return every delivery channel keyed by its name.

    Email and Telegram talk to their providers only when the matching
    credentials are configured; otherwise they log what they would send.
    """
    from src.adapters.email_channel import EmailChannel
    from src.adapters.in_app_channel import InAppChannel
    from src.adapters.push_channel import PushChannel
    from src.adapters.telegram_notifier import TelegramChannel

    config = config or settings

    bot = None
    if config.TELEGRAM_BOT_TOKEN:
        from telegram import Bot

        bot = Bot(token=config.TELEGRAM_BOT_TOKEN)

    channels = [
        InAppChannel(store.reminders),
        EmailChannel(api_key=config.RESEND_API_KEY, sender=config.EMAIL_FROM),
        PushChannel(),
        TelegramChannel(bot),
    ]
    return {channel.name: channel for channel in channels}
