"""Tests for proactive notification sinks."""

import logging
from unittest.mock import AsyncMock

import pytest
from telegram.error import TelegramError

from samchat.proactive import LogNotifier, Notification, TelegramNotifier


class TestNotification:
    def test_defaults(self):
        notification = Notification(title="SAM", body="yo")
        assert notification.to_dict() == {
            "title": "SAM",
            "body": "yo",
            "tag": "sam-proactive",
            "requireInteraction": True,
        }


class TestLogNotifier:
    @pytest.mark.asyncio
    async def test_logs(self, caplog):
        caplog.set_level(logging.INFO, logger="samchat.proactive.notify")
        assert await LogNotifier().notify(Notification(title="SAM", body="yo there")) is True
        assert "SAM: yo there" in caplog.text


class TestTelegramNotifier:
    def test_requires_token_or_bot(self):
        with pytest.raises(ValueError):
            TelegramNotifier(None, 42)

    @pytest.mark.asyncio
    async def test_sends(self):
        bot = AsyncMock()
        notifier = TelegramNotifier(None, 42, bot=bot)

        assert await notifier.notify(Notification(title="SAM", body="yo")) is True
        assert await notifier.notify(Notification(title="SAM", body="again")) is True

        bot.initialize.assert_awaited_once()
        bot.send_message.assert_any_await(chat_id=42, text="SAM\n\nyo")
        assert bot.send_message.await_count == 2

    @pytest.mark.asyncio
    async def test_truncates_long_messages(self):
        bot = AsyncMock()
        notifier = TelegramNotifier(None, 42, bot=bot)

        await notifier.notify(Notification(title="SAM", body="x" * 5000))

        assert len(bot.send_message.await_args.kwargs["text"]) == 4096

    @pytest.mark.asyncio
    async def test_telegram_error(self):
        bot = AsyncMock()
        bot.send_message.side_effect = TelegramError("chat not found")
        notifier = TelegramNotifier(None, 42, bot=bot)

        assert await notifier.notify(Notification(title="SAM", body="yo")) is False

    @pytest.mark.asyncio
    async def test_close(self):
        bot = AsyncMock()
        notifier = TelegramNotifier(None, 42, bot=bot)

        await notifier.close()
        bot.shutdown.assert_not_awaited()

        await notifier.notify(Notification(title="SAM", body="yo"))
        await notifier.close()
        bot.shutdown.assert_awaited_once()
