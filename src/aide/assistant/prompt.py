from __future__ import annotations

from datetime import datetime
from pathlib import Path

PROMPT_FILES = ["SOUL.md", "USER.md"]
WEEKDAYS_KO = ["월요일", "화요일", "수요일", "목요일", "금요일", "토요일", "일요일"]


def build_system_prompt(
    now: datetime,
    *,
    timezone_name: str,
    owner_name: str = "대표님",
    prompt_dir: Path | None = None,
) -> str:
    today = now.date().isoformat()
    weekday = WEEKDAYS_KO[now.weekday()]
    offset = now.strftime("%z")
    offset = f"UTC{offset[:3]}:{offset[3:]}" if offset else "UTC"

    sections = [
        (
            f"You are the personal schedule and to-do assistant of {owner_name}.\n"
            "Answer in concise, friendly Korean using polite speech (존댓말). "
            "Give only the essentials and skip unnecessary explanation."
        ),
        (
            f"Today: {today} ({now.year}년 {now.month}월 {now.day}일 {weekday})\n"
            f"Current time: {now.strftime('%H:%M')}\n"
            f"Time zone: {timezone_name} ({offset})"
        ),
        (
            "Rules:\n"
            "- When the user uses a relative expression such as \"오늘\", \"내일\", \"모레\" or "
            f"\"다음주 월요일\", compute the exact YYYY-MM-DD date from today ({today}) "
            "before passing it to a tool.\n"
            "- Times go to tools as HH:MM in 24h format (\"오후 3시\" is 15:00).\n"
            "- When several tasks or events are requested at once, make a separate tool call for each.\n"
            "- Requests mixing events and tasks use the matching tool for each part.\n"
            "- Base the final answer on the tool results; if a tool reports an error, say what could not be done."
        ),
    ]

    if prompt_dir is not None:
        for filename in PROMPT_FILES:
            path = prompt_dir / filename
            if not path.exists() or not path.is_file():
                continue
            content = path.read_text(encoding="utf-8").strip()
            if not content:
                continue
            sections.append(f"[{filename}]\n{content}")

    return "\n\n".join(sections)
