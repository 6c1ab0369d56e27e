from __future__ import annotations

from dataclasses import dataclass
from datetime import tzinfo

import httpx
from telegram import Bot

from aide.assistant.clock import Clock, load_zone, zone_clock
from aide.assistant.loop import ChatHandler
from aide.assistant.tools import ToolRegistry
from aide.briefing import BriefingBuilder
from aide.config import AppConfig
from aide.google.auth import GoogleAuth
from aide.google.calendar import CalendarClient
from aide.google.tasks import TasksClient
from aide.llm.client import ChatCompletionClient
from aide.notify import TelegramNotifier
from aide.reminders import ReminderEngine
from aide.storage.conversations import ConversationStore
from aide.storage.database import Database
from aide.storage.reminders import ReminderStore
from aide.storage.tokens import TokenStore


@dataclass
class Services:
    config: AppConfig
    db: Database
    http: httpx.AsyncClient
    conversations: ConversationStore
    reminders: ReminderStore
    auth: GoogleAuth
    calendar: CalendarClient
    tasks: TasksClient
    llm: ChatCompletionClient | None
    notifier: TelegramNotifier
    chat: ChatHandler
    engine: ReminderEngine
    briefing: BriefingBuilder
    zone: tzinfo
    clock: Clock

    async def aclose(self) -> None:
        await self.http.aclose()
        self.db.close()


def build_services(config: AppConfig, bot: Bot) -> Services:
    """Wire every collaborator explicitly; the caller owns the returned lifecycle."""
    zone = load_zone(config.assistant.timezone)
    clock = zone_clock(zone)

    db = Database(config.storage.path)
    db.open()
    http = httpx.AsyncClient(timeout=config.google.timeout_seconds)

    conversations = ConversationStore(db, limit=config.assistant.history_limit)
    reminders = ReminderStore(db)
    auth = GoogleAuth(config.google, TokenStore(db), http_client=http)
    calendar = CalendarClient(config.google, auth, http_client=http)
    tasks = TasksClient(config.google, auth, http_client=http)
    llm = ChatCompletionClient(config.llm) if config.llm.is_configured else None
    notifier = TelegramNotifier(bot, default_chat_id=config.telegram.allowed_chat_id)

    registry = ToolRegistry(
        calendar,
        tasks,
        zone,
        clock=clock,
        timeout_seconds=config.assistant.tool_timeout_seconds,
    )
    chat = ChatHandler(
        model=llm,
        tools=registry,
        store=conversations,
        notifier=notifier,
        zone=zone,
        timezone_name=config.assistant.timezone,
        clock=clock,
        max_iterations=config.assistant.max_tool_iterations,
        owner_name=config.assistant.owner_name,
        prompt_dir=config.assistant.prompt_dir,
    )
    engine = ReminderEngine(reminders, notifier, calendar)
    briefing = BriefingBuilder(
        calendar,
        tasks,
        reminders,
        zone,
        summarizer=llm,
        summarize=config.scheduler.briefing_summarize,
        owner_name=config.assistant.owner_name,
    )

    return Services(
        config=config,
        db=db,
        http=http,
        conversations=conversations,
        reminders=reminders,
        auth=auth,
        calendar=calendar,
        tasks=tasks,
        llm=llm,
        notifier=notifier,
        chat=chat,
        engine=engine,
        briefing=briefing,
        zone=zone,
        clock=clock,
    )
