from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Callable
from zoneinfo import ZoneInfo

from aide.errors import ToolArgumentError

Clock = Callable[[], datetime]

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^(?P<hour>\d{1,2})(?::(?P<minute>\d{2}))?$")


def zone_clock(zone: tzinfo) -> Clock:
    def now() -> datetime:
        return datetime.now(zone)

    return now


def load_zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def parse_date(value: str, field: str = "date") -> date:
    text = value.strip()
    if not _DATE_RE.match(text):
        raise ToolArgumentError(f"{field} must be in YYYY-MM-DD format, got {value!r}")
    try:
        return date.fromisoformat(text)
    except ValueError as exc:
        raise ToolArgumentError(f"{field} is not a valid date: {value!r}") from exc


def parse_time(value: str, field: str = "time") -> time:
    match = _TIME_RE.match(value.strip())
    if not match:
        raise ToolArgumentError(f"{field} must be in HH:MM (24h) format, got {value!r}")
    hour = int(match.group("hour"))
    minute = int(match.group("minute") or 0)
    if hour > 23 or minute > 59:
        raise ToolArgumentError(f"{field} is out of range: {value!r}")
    return time(hour, minute)


def parse_rfc3339(value: str) -> datetime:
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def at(day: date, moment: time, zone: tzinfo) -> datetime:
    return datetime.combine(day, moment, tzinfo=zone)


def day_range(day: date, days: int, zone: tzinfo) -> tuple[datetime, datetime]:
    """Half-open interval [day 00:00, day+days 00:00) in ``zone``."""
    start = at(day, time(0, 0), zone)
    end = at(day + timedelta(days=days), time(0, 0), zone)
    return start, end


def hhmm(value: datetime | time) -> str:
    return f"{value.hour:02d}:{value.minute:02d}"
