"""Error taxonomy for the reminder engine."""

from typing import Optional


class ReminderEngineError(Exception):
    """Base error with a user-facing message."""

    default_message = "Reminder engine error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# Delivery service errors. Local to the scheduler and refresh coordinator.

class NotificationError(ReminderEngineError):
    default_message = "Notification scheduling failed"


class AuthorizationDenied(NotificationError):
    default_message = "Notification permission is required. Allow notifications in settings."


class CapacityExceeded(NotificationError):
    default_message = "Notification limit reached. Complete some older tasks."


class InvalidScheduleTime(NotificationError):
    default_message = "Notifications cannot be scheduled in the past"


# Task errors. Fatal to the triggering user action.

class TaskError(ReminderEngineError):
    default_message = "Task operation failed"


class TaskValidationError(TaskError):
    default_message = "Task settings are invalid"


class InvalidRepeatPattern(TaskValidationError):
    default_message = "Repeat settings are invalid. Check the pattern parameters."


class TaskNotFound(TaskError):
    default_message = "Task not found"


class StoreWriteFailed(TaskError):
    default_message = "Failed to save the task"
