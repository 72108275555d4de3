"""Task models for the reminder engine."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

from ..utils.dt import as_utc, utc_now
from .repeat import RepeatPattern


class Priority(str, Enum):
    """Task priority. Compared by rank, not by string value."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return {"low": 1, "medium": 2, "high": 3}[self.value]


class TimePointKind(str, Enum):
    """One of the two independent reminder anchors of a task."""
    START_TIME = "starttime"
    DEADLINE = "deadline"

    @property
    def display_name(self) -> str:
        return "Start time" if self is TimePointKind.START_TIME else "Deadline"


class NotificationKind(str, Enum):
    NONE = "none"  # no notification
    ONCE = "once"  # single notification at the time point
    REMIND = "remind"  # repeating reminders ending in a final notification


class TaskRole(str, Enum):
    SINGLE = "single"
    TEMPLATE = "template"  # repeating definition, never reminded itself
    INSTANCE = "instance"  # generated occurrence of a template


class NotificationSpec(BaseModel):
    """Notification settings for one time point."""
    kind: NotificationKind = NotificationKind.NONE
    offset_minutes: int = Field(default=60, ge=0)
    interval_minutes: int = Field(default=15, ge=0)

    @model_validator(mode="after")
    def _check_interval(self) -> "NotificationSpec":
        if self.kind is NotificationKind.REMIND and self.interval_minutes < 1:
            raise ValueError("remind notifications need an interval of at least 1 minute")
        return self


class Task(BaseModel):
    """The unit of reminding."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    title: str
    category_id: Optional[str] = None
    priority: Priority = Priority.MEDIUM

    start_time: Optional[datetime] = None
    deadline: Optional[datetime] = None
    start_time_notification: NotificationSpec = Field(default_factory=NotificationSpec)
    deadline_notification: NotificationSpec = Field(default_factory=NotificationSpec)

    is_completed: bool = False
    completed_at: Optional[datetime] = None
    is_archived: bool = False

    is_repeating: bool = False
    repeat_pattern: Optional[RepeatPattern] = None
    repeat_end_date: Optional[datetime] = None
    parent_task_id: Optional[str] = None

    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("start_time", "deadline", "completed_at", "repeat_end_date", "created_at")
    @classmethod
    def _normalize_datetime(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value) if value is not None else None

    @field_validator("title")
    @classmethod
    def _check_title(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("title must not be empty")
        return value

    @model_validator(mode="after")
    def _check_invariants(self) -> "Task":
        if self.start_time and self.deadline and self.deadline < self.start_time:
            raise ValueError("deadline must not be before the start time")
        if self.is_archived and not self.is_completed:
            raise ValueError("only completed tasks can be archived")
        if self.is_repeating and self.parent_task_id:
            raise ValueError("generated instances cannot repeat on their own")
        if self.is_repeating and self.repeat_pattern is None:
            raise ValueError("repeating tasks need a repeat pattern")
        return self

    @property
    def role(self) -> TaskRole:
        if self.parent_task_id:
            return TaskRole.INSTANCE
        if self.is_repeating:
            return TaskRole.TEMPLATE
        return TaskRole.SINGLE

    @property
    def anchor_kind(self) -> Optional[TimePointKind]:
        """Time point that recurrence advances (deadline preferred)."""
        if self.deadline is not None:
            return TimePointKind.DEADLINE
        if self.start_time is not None:
            return TimePointKind.START_TIME
        return None

    @property
    def anchor_date(self) -> Optional[datetime]:
        return self.deadline or self.start_time

    def time_point(self, kind: TimePointKind) -> Optional[datetime]:
        if kind is TimePointKind.START_TIME:
            return self.start_time
        return self.deadline

    def notification_spec(self, kind: TimePointKind) -> NotificationSpec:
        if kind is TimePointKind.START_TIME:
            return self.start_time_notification
        return self.deadline_notification

    def has_notification(self, kind: TimePointKind) -> bool:
        return (
            self.notification_spec(kind).kind is not NotificationKind.NONE
            and self.time_point(kind) is not None
        )

    def has_reminder(self, kind: TimePointKind) -> bool:
        return (
            self.notification_spec(kind).kind is NotificationKind.REMIND
            and self.time_point(kind) is not None
        )

    @property
    def has_any_reminder(self) -> bool:
        return any(self.has_reminder(kind) for kind in TimePointKind)

    def reminder_end(self, kind: TimePointKind) -> Optional[datetime]:
        """End instant of a reminder stream, or None to run until completion.

        Deadline reminders never end on their own. Start time reminders end at
        the start time when a deadline exists, since the deadline stream takes
        over from there.
        """
        if kind is TimePointKind.START_TIME and self.deadline is not None:
            return self.start_time
        return None
