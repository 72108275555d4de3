"""Reminder window, scheduler and refresh coordinator."""

from .refresh import RefreshCoordinator, RefreshResult
from .scheduler import ReminderScheduler, ScheduleResult, TaskLocks
from .window import Candidate, ReminderWindow, next_instants

__all__ = [
    "Candidate",
    "RefreshCoordinator",
    "RefreshResult",
    "ReminderScheduler",
    "ReminderWindow",
    "ScheduleResult",
    "TaskLocks",
    "next_instants",
]
