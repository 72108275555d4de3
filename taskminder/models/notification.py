"""Notification request models and the deterministic request id format.

Ids follow ``<timepoint>_<mode>_<taskId>[_<epochSeconds>]`` where mode is
``once`` or ``reminder``. Cancellation matches once ids exactly and reminder
ids by their ``<timepoint>_reminder_<taskId>_`` prefix, so this format must
stay stable for previously scheduled requests to remain cancellable.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from ..utils.dt import epoch_seconds
from .task import TimePointKind


class RequestMode(str, Enum):
    ONCE = "once"
    REMINDER = "reminder"


class InterruptionLevel(str, Enum):
    PASSIVE = "passive"
    ACTIVE = "active"
    TIME_SENSITIVE = "time_sensitive"


class NotificationContent(BaseModel):
    """Payload handed to the delivery service."""
    title: str
    body: str
    category: str
    interruption_level: InterruptionLevel = InterruptionLevel.ACTIVE
    task_id: Optional[str] = None
    is_final: bool = False
    extra: Dict[str, Any] = Field(default_factory=dict)


class PendingNotification(BaseModel):
    id: str
    when: datetime


class DeliveredNotification(BaseModel):
    id: str
    delivered_at: datetime


@dataclass(frozen=True)
class RequestId:
    """Parsed form of a deterministic notification request id."""

    timepoint: TimePointKind
    mode: RequestMode
    task_id: str
    epoch: Optional[int] = None

    def __str__(self) -> str:
        base = f"{self.timepoint.value}_{self.mode.value}_{self.task_id}"
        return base if self.epoch is None else f"{base}_{self.epoch}"


def once_request_id(task_id: str, timepoint: TimePointKind) -> str:
    return str(RequestId(timepoint, RequestMode.ONCE, task_id))


def reminder_request_id(task_id: str, timepoint: TimePointKind, when: datetime) -> str:
    return str(RequestId(timepoint, RequestMode.REMINDER, task_id, epoch_seconds(when)))


def timepoint_prefixes(task_id: str, timepoint: TimePointKind) -> List[str]:
    """Patterns covering every request of one (task, time point).

    Patterns ending in ``_`` match by prefix, others match exactly.
    """
    return [
        once_request_id(task_id, timepoint),
        f"{timepoint.value}_{RequestMode.REMINDER.value}_{task_id}_",
    ]


def task_prefixes(task_id: str) -> List[str]:
    """Patterns covering every request of a task, legacy ids included."""
    prefixes: List[str] = []
    for timepoint in TimePointKind:
        prefixes.extend(timepoint_prefixes(task_id, timepoint))
    prefixes.extend([f"alarm_{task_id}", f"reminder_{task_id}", f"reminder_{task_id}_"])
    return prefixes


def request_matches(request_id: str, prefixes: Iterable[str]) -> bool:
    """Whether an id equals a pattern or starts with a ``_``-terminated one."""
    return any(
        request_id.startswith(prefix) if prefix.endswith("_") else request_id == prefix
        for prefix in prefixes
    )


def parse_request_id(request_id: str) -> Optional[RequestId]:
    """Parse a request id; returns None for ids in any other format."""
    parts = request_id.split("_", 2)
    if len(parts) != 3:
        return None
    timepoint_raw, mode_raw, rest = parts
    try:
        timepoint = TimePointKind(timepoint_raw)
        mode = RequestMode(mode_raw)
    except ValueError:
        return None

    if mode is RequestMode.ONCE:
        return RequestId(timepoint, mode, rest) if rest else None

    task_id, sep, epoch_raw = rest.rpartition("_")
    if not sep or not task_id or not epoch_raw.isdigit():
        return None
    return RequestId(timepoint, mode, task_id, int(epoch_raw))


@dataclass(frozen=True)
class NotificationRequest:
    """A single materialized notification instant for a task time point."""

    task_id: str
    timepoint: TimePointKind
    scheduled_at: datetime
    is_final: bool = False
    mode: RequestMode = RequestMode.REMINDER

    @property
    def id(self) -> str:
        if self.mode is RequestMode.ONCE:
            return once_request_id(self.task_id, self.timepoint)
        return reminder_request_id(self.task_id, self.timepoint, self.scheduled_at)
