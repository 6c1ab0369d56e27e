from __future__ import annotations

import pytest
from telegram.error import NetworkError

from aide.notify import TELEGRAM_MESSAGE_LIMIT, TelegramNotifier


class FakeBot:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.sent: list[dict] = []

    async def send_message(self, **kwargs) -> None:
        if self.error is not None:
            raise self.error
        self.sent.append(kwargs)


@pytest.mark.asyncio
async def test_deliver_sends_and_truncates() -> None:
    bot = FakeBot()
    notifier = TelegramNotifier(bot)

    assert await notifier.deliver(5, "x" * (TELEGRAM_MESSAGE_LIMIT + 10)) is True

    sent = bot.sent[0]
    assert sent["chat_id"] == 5
    assert len(sent["text"]) == TELEGRAM_MESSAGE_LIMIT
    assert sent["text"].endswith("…")


@pytest.mark.asyncio
async def test_delivery_failure_returns_false() -> None:
    notifier = TelegramNotifier(FakeBot(error=NetworkError("connection reset")))

    assert await notifier.deliver(5, "hello") is False


@pytest.mark.asyncio
async def test_owner_messages_need_a_chat() -> None:
    bot = FakeBot()

    assert await TelegramNotifier(bot).deliver_to_owner("hi") is False
    assert bot.sent == []


@pytest.mark.asyncio
async def test_reminder_is_escaped_html() -> None:
    bot = FakeBot()
    notifier = TelegramNotifier(bot, default_chat_id=99)

    assert await notifier.send_reminder("R&D <sync>", "[recurring] R&D <sync>") is True

    sent = bot.sent[0]
    assert sent["chat_id"] == 99
    assert sent["parse_mode"] == "HTML"
    assert sent["text"] == "🔔 <b>R&amp;D &lt;sync&gt;</b>\n[recurring] R&amp;D &lt;sync&gt;"
