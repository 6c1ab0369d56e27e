from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Any

import yaml


@dataclass
class TelegramConfig:
    bot_token: str = ""
    allowed_chat_id: int | None = None


@dataclass
class LLMConfig:
    api_key: str = ""
    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-4.1-mini"
    temperature: float = 0.1
    timeout_seconds: float = 60.0

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key.strip())


@dataclass
class GoogleConfig:
    client_id: str = ""
    client_secret: str = ""
    token_url: str = "https://oauth2.googleapis.com/token"
    calendar_base_url: str = "https://www.googleapis.com/calendar/v3"
    tasks_base_url: str = "https://www.googleapis.com/tasks/v1"
    calendar_id: str = "primary"
    task_list_id: str = "@default"
    user_label: str = "owner"
    timeout_seconds: float = 15.0


@dataclass
class StorageConfig:
    path: Path = Path("data/aide.db")


@dataclass
class AssistantConfig:
    timezone: str = "Asia/Seoul"
    history_limit: int = 10
    max_tool_iterations: int = 10
    tool_timeout_seconds: float = 30.0
    owner_name: str = "대표님"
    prompt_dir: Path | None = None


@dataclass
class TemporalConfig:
    address: str = "localhost:7233"
    namespace: str = "default"
    task_queue: str = "aide-scheduler"


@dataclass
class SchedulerConfig:
    reminder_cron: str = "*/5 * * * *"
    briefing_cron: str = "CRON_TZ=Asia/Seoul 0 8 * * *"
    briefing_summarize: bool = False


@dataclass
class AppConfig:
    telegram: TelegramConfig = field(default_factory=TelegramConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    google: GoogleConfig = field(default_factory=GoogleConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    assistant: AssistantConfig = field(default_factory=AssistantConfig)
    temporal: TemporalConfig = field(default_factory=TemporalConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)


def load_settings(path: str | Path) -> AppConfig:
    raw = yaml.safe_load(Path(path).read_text()) or {}
    expanded = _expand_env(raw)

    telegram = dict(expanded.get("telegram") or {})
    if telegram.get("allowed_chat_id") in ("", None):
        telegram["allowed_chat_id"] = None
    else:
        telegram["allowed_chat_id"] = int(telegram["allowed_chat_id"])

    storage = dict(expanded.get("storage") or {})
    if "path" in storage:
        storage["path"] = Path(storage["path"])

    assistant = dict(expanded.get("assistant") or {})
    if assistant.get("prompt_dir"):
        assistant["prompt_dir"] = Path(assistant["prompt_dir"])
    else:
        assistant.pop("prompt_dir", None)

    return AppConfig(
        telegram=TelegramConfig(**telegram),
        llm=LLMConfig(**(expanded.get("llm") or {})),
        google=GoogleConfig(**(expanded.get("google") or {})),
        storage=StorageConfig(**storage),
        assistant=AssistantConfig(**assistant),
        temporal=TemporalConfig(**(expanded.get("temporal") or {})),
        scheduler=SchedulerConfig(**(expanded.get("scheduler") or {})),
    )


def _expand_env(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _expand_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_env(v) for v in value]
    if isinstance(value, str):
        return _expand_env_str(value)
    return value


def _expand_env_str(value: str) -> str:
    if value.startswith("${") and value.endswith("}"):
        return os.getenv(value[2:-1], "")
    return value
