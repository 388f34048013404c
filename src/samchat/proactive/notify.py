"""Notification sinks for proactive messages."""

import logging
from dataclasses import dataclass
from typing import Any, Protocol

from telegram import Bot
from telegram.error import TelegramError

logger = logging.getLogger(__name__)

NOTIFICATION_TAG = "sam-proactive"
MAX_MESSAGE_LENGTH = 4096


@dataclass(frozen=True)
class Notification:
    """What the receiving layer displays. ``tag`` de-duplicates on its side."""

    title: str
    body: str
    tag: str = NOTIFICATION_TAG
    require_interaction: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "body": self.body,
            "tag": self.tag,
            "requireInteraction": self.require_interaction,
        }


class NotificationSink(Protocol):
    """Something that can display a notification."""

    async def notify(self, notification: Notification) -> bool: ...


class LogNotifier:
    """Writes notifications to the application log."""

    def __init__(self, level: int = logging.INFO) -> None:
        self.level = level

    async def notify(self, notification: Notification) -> bool:
        logger.log(self.level, "[%s] %s: %s", notification.tag, notification.title, notification.body)
        return True


class TelegramNotifier:
    """Pushes notifications to a Telegram chat through a bot."""

    def __init__(self, token: str | None, chat_id: int | str, bot: Bot | None = None) -> None:
        """Initialize the notifier.

        Args:
            token: Bot token from @BotFather. Ignored if ``bot`` is given.
            chat_id: Chat that receives the messages.
            bot: Pre-built bot, mainly for tests.
        """
        if bot is None and not token:
            raise ValueError("A bot token is required")
        self.chat_id = chat_id
        self._bot = bot if bot is not None else Bot(token)
        self._initialized = False

    async def notify(self, notification: Notification) -> bool:
        text = f"{notification.title}\n\n{notification.body}"[:MAX_MESSAGE_LENGTH]
        try:
            if not self._initialized:
                await self._bot.initialize()
                self._initialized = True
            await self._bot.send_message(chat_id=self.chat_id, text=text)
        except TelegramError as e:
            logger.warning("Telegram notification failed: %s", e)
            return False
        return True

    async def close(self) -> None:
        if self._initialized:
            await self._bot.shutdown()
            self._initialized = False
