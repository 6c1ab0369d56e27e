from __future__ import annotations

import argparse
import asyncio
import logging
import platform
import signal
from importlib.metadata import PackageNotFoundError, version

from telegram import Update
from telegram.ext import Application, CommandHandler, ContextTypes, MessageHandler, filters

from aide.config import AppConfig, load_settings
from aide.services import Services, build_services
from aide.telegram.reminder_commands import (
    create_reminder,
    deactivate_reminder,
    delete_reminder,
    describe_reminders,
)

LOGGER = logging.getLogger(__name__)

HELP_TEXT = (
    "Commands:\n"
    "/help - show this message\n"
    "/whoami - show your Telegram user and chat id\n"
    "/status - show current runtime status\n"
    "/briefing - send today's briefing now\n"
    "/reminders [id] - list active reminders, or show one with its alert history\n"
    "/remind YYYY-MM-DD HH:MM title - remind once that time has passed\n"
    "/remind before MINUTES title - remind before an event in the next 7 days\n"
    "/unremind id|title - deactivate a reminder\n"
    "/delremind id|title - delete a reminder\n"
    "/reset - forget this chat's conversation history\n"
    "Any other text is handled by the assistant."
)


def _get_aide_version() -> str:
    try:
        return version("aide")
    except PackageNotFoundError:
        return "unknown"


def format_status_block(config: AppConfig, *, google_connected: bool | None = None) -> str:
    lines = [
        "status:",
        f"model: {config.llm.model}",
        f"ai_enabled: {str(config.llm.is_configured).lower()}",
        f"timezone: {config.assistant.timezone}",
        f"history_limit: {config.assistant.history_limit}",
        f"max_tool_iterations: {config.assistant.max_tool_iterations}",
        (
            "temporal: "
            f"address={config.temporal.address} "
            f"namespace={config.temporal.namespace} "
            f"task_queue={config.temporal.task_queue}"
        ),
        f"storage: {config.storage.path}",
        f"allowed_chat_id: {config.telegram.allowed_chat_id}",
    ]
    if google_connected is not None:
        lines.append(f"google_connected: {str(google_connected).lower()}")
    lines.append(f"python_version: {platform.python_version()}")
    lines.append(f"aide_version: {_get_aide_version()}")
    return "\n".join(lines)


class TelegramBotApp:
    def __init__(self, config: AppConfig, application: Application, services: Services) -> None:
        self._config = config
        self._app = application
        self._services = services
        self._stop_event = asyncio.Event()

        self._app.add_handler(CommandHandler("help", self._on_help))
        self._app.add_handler(CommandHandler("start", self._on_help))
        self._app.add_handler(CommandHandler("whoami", self._on_whoami))
        self._app.add_handler(CommandHandler("status", self._on_status))
        self._app.add_handler(CommandHandler("briefing", self._on_briefing))
        self._app.add_handler(CommandHandler("reminders", self._on_reminders))
        self._app.add_handler(CommandHandler("remind", self._on_remind))
        self._app.add_handler(CommandHandler("unremind", self._on_unremind))
        self._app.add_handler(CommandHandler("delremind", self._on_delremind))
        self._app.add_handler(CommandHandler("reset", self._on_reset))
        self._app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, self._on_message))

    @classmethod
    def create(cls, config: AppConfig) -> TelegramBotApp:
        application = Application.builder().token(config.telegram.bot_token).build()
        services = build_services(config, application.bot)
        return cls(config, application, services)

    @property
    def services(self) -> Services:
        return self._services

    async def start(self) -> None:
        await self._app.initialize()
        await self._app.start()
        await self._app.updater.start_polling(drop_pending_updates=True)

    async def stop(self) -> None:
        if self._app.updater:
            await self._app.updater.stop()
        await self._app.stop()
        await self._app.shutdown()

    async def run_forever(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._stop_event.set)
            except NotImplementedError:
                pass

        await self.start()
        try:
            await self._stop_event.wait()
        finally:
            await self.stop()

    async def _on_message(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        message = update.effective_message
        if message is None or not message.text or not self._is_allowed_chat(update):
            return
        await self._services.chat.handle_message(str(message.chat_id), message.text)

    async def _on_help(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not self._is_allowed_chat(update):
            return
        await update.effective_message.reply_text(HELP_TEXT)

    async def _on_whoami(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        user = update.effective_user
        message = update.effective_message
        if user is None or message is None:
            return

        lines = [f"user_id: {user.id}", f"chat_id: {message.chat_id}"]
        if user.username:
            lines.append(f"username: @{user.username}")
        else:
            lines.append("username: <not set>")
        await message.reply_text("\n".join(lines))

    async def _on_status(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not self._is_allowed_chat(update):
            return
        connected = await self._services.auth.is_connected()
        await update.effective_message.reply_text(format_status_block(self._config, google_connected=connected))

    async def _on_briefing(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not self._is_allowed_chat(update):
            return
        briefing = await self._services.briefing.build(self._services.clock())
        await update.effective_message.reply_text(briefing.text)

    async def _on_reminders(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not self._is_allowed_chat(update):
            return
        ref = " ".join(context.args or []) or None
        await update.effective_message.reply_text(await describe_reminders(self._services.reminders, ref))

    async def _on_remind(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not self._is_allowed_chat(update):
            return
        reply = await create_reminder(
            self._services.reminders,
            self._services.calendar,
            self._services.zone,
            self._services.clock(),
            context.args or [],
        )
        await update.effective_message.reply_text(reply)

    async def _on_unremind(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not self._is_allowed_chat(update):
            return
        if not context.args:
            await update.effective_message.reply_text("사용법: /unremind <id 또는 제목>")
            return
        reply = await deactivate_reminder(self._services.reminders, " ".join(context.args))
        await update.effective_message.reply_text(reply)

    async def _on_delremind(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not self._is_allowed_chat(update):
            return
        if not context.args:
            await update.effective_message.reply_text("사용법: /delremind <id 또는 제목>")
            return
        reply = await delete_reminder(self._services.reminders, " ".join(context.args))
        await update.effective_message.reply_text(reply)

    async def _on_reset(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not self._is_allowed_chat(update):
            return
        await self._services.conversations.clear(str(update.effective_message.chat_id))
        await update.effective_message.reply_text("대화 기록을 초기화했습니다.")

    def _is_allowed_chat(self, update: Update) -> bool:
        chat = update.effective_chat
        if chat is None:
            return False
        allowed = self._config.telegram.allowed_chat_id
        if allowed is not None and chat.id != allowed:
            LOGGER.warning("Ignoring message from unauthorized chat: %s", chat.id)
            return False
        return True


async def run_bot(config_path: str) -> None:
    config = load_settings(config_path)
    bot = TelegramBotApp.create(config)
    try:
        await bot.run_forever()
    finally:
        await bot.services.aclose()


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    parser = argparse.ArgumentParser(description="Run the aide Telegram bot")
    parser.add_argument("--config", default="config/example.yaml")
    args = parser.parse_args()
    asyncio.run(run_bot(args.config))


if __name__ == "__main__":
    main()
