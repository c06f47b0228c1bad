"""Notifier implementations."""

from chunked_relay.infrastructure.notifications.logging_notifier import LoggingNotifier
from chunked_relay.infrastructure.notifications.telegram_bot_notifier import (
    NotifierError,
    TelegramBotNotifier,
)

__all__ = ["LoggingNotifier", "NotifierError", "TelegramBotNotifier"]
