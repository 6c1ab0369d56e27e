from __future__ import annotations

import html
import logging

from telegram import Bot
from telegram.error import TelegramError

LOGGER = logging.getLogger(__name__)

TELEGRAM_MESSAGE_LIMIT = 4096


class TelegramNotifier:
    """Sends chat messages; failures are reported as ``False``, never raised."""

    def __init__(self, bot: Bot, default_chat_id: int | str | None = None) -> None:
        self._bot = bot
        self._default_chat_id = default_chat_id

    @property
    def default_chat_id(self) -> int | str | None:
        return self._default_chat_id

    async def deliver(self, chat_id: int | str, text: str, parse_mode: str | None = None) -> bool:
        if len(text) > TELEGRAM_MESSAGE_LIMIT:
            text = text[: TELEGRAM_MESSAGE_LIMIT - 1] + "…"
        try:
            await self._bot.send_message(chat_id=chat_id, text=text, parse_mode=parse_mode)
        except TelegramError as exc:
            LOGGER.error("Telegram send to %s failed: %s", chat_id, exc)
            return False
        return True

    async def deliver_to_owner(self, text: str, parse_mode: str | None = None) -> bool:
        if self._default_chat_id is None:
            LOGGER.warning("No owner chat configured, skipping message")
            return False
        return await self.deliver(self._default_chat_id, text, parse_mode=parse_mode)

    async def send_reminder(self, title: str, message: str) -> bool:
        text = f"🔔 <b>{html.escape(title, quote=False)}</b>\n{html.escape(message, quote=False)}"
        return await self.deliver_to_owner(text, parse_mode="HTML")
