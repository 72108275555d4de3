"""Datetime helpers shared by the reminder engine."""

from datetime import datetime, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from ..config import get_settings

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def local_timezone(name: Optional[str] = None) -> ZoneInfo:
    """Return the configured local timezone."""
    return ZoneInfo(name or get_settings().timezone)


def as_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC. Naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def as_local(value: datetime, tz: Optional[ZoneInfo] = None) -> datetime:
    """Convert a datetime to the local timezone."""
    return as_utc(value).astimezone(tz or local_timezone())


def epoch_seconds(value: datetime) -> int:
    return int(as_utc(value).timestamp())


def format_short(value: datetime, tz: Optional[ZoneInfo] = None) -> str:
    """Format as M/d HH:mm in the local timezone."""
    local = as_local(value, tz)
    return f"{local.month}/{local.day} {local:%H:%M}"
