"""Task, repeat pattern and notification models."""

from .notification import (
    DeliveredNotification,
    InterruptionLevel,
    NotificationContent,
    NotificationRequest,
    PendingNotification,
    RequestId,
    RequestMode,
    parse_request_id,
    request_matches,
)
from .repeat import (
    CustomPattern,
    DailyPattern,
    EveryNDaysPattern,
    EveryNHoursPattern,
    MonthlyPattern,
    NthWeekdayOfMonthPattern,
    RepeatPattern,
    WeeklyPattern,
    YearlyPattern,
)
from .task import NotificationKind, NotificationSpec, Priority, Task, TaskRole, TimePointKind

__all__ = [
    "CustomPattern",
    "DailyPattern",
    "DeliveredNotification",
    "EveryNDaysPattern",
    "EveryNHoursPattern",
    "InterruptionLevel",
    "MonthlyPattern",
    "NotificationContent",
    "NotificationKind",
    "NotificationRequest",
    "NotificationSpec",
    "NthWeekdayOfMonthPattern",
    "PendingNotification",
    "Priority",
    "RepeatPattern",
    "RequestId",
    "RequestMode",
    "Task",
    "TaskRole",
    "TimePointKind",
    "WeeklyPattern",
    "YearlyPattern",
    "parse_request_id",
    "request_matches",
]
