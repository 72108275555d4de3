"""Task manager - user-initiated task operations and their reminder side effects.

Store failures are fatal to the operation and propagate. Delivery failures
never undo a successful save: the task is kept without active notifications.
"""

from enum import Enum
from typing import List, Optional

from pydantic import ValidationError

from ..errors import AuthorizationDenied, NotificationError, StoreWriteFailed, TaskError, TaskNotFound, TaskValidationError
from ..logging_config import get_logger
from ..models.task import Task, TaskRole
from ..utils.dt import Clock, utc_now
from .archive import ArchiveSweeper
from .recurrence.generator import RecurrenceGenerator
from .reminders.scheduler import ReminderScheduler, ScheduleResult
from .task_store import TaskQuery, TaskStore

logger = get_logger(__name__)


class TaskFilter(str, Enum):
    ALL = "all"  # everything except archived
    INCOMPLETE = "incomplete"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class TaskSort(str, Enum):
    DEADLINE_ASC = "deadline_asc"
    PRIORITY_DESC = "priority_desc"
    CREATED_ASC = "created_asc"
    CREATED_DESC = "created_desc"


class TaskManager:
    """Entry point for task creation, editing, completion and deletion."""

    def __init__(
        self,
        store: TaskStore,
        scheduler: ReminderScheduler,
        generator: RecurrenceGenerator,
        sweeper: ArchiveSweeper,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.scheduler = scheduler
        self.generator = generator
        self.sweeper = sweeper
        self.clock = clock

    # Queries

    def get_task(self, task_id: str) -> Task:
        task = self.store.fetch(task_id)
        if task is None:
            raise TaskNotFound()
        return task

    def list_tasks(self, task_filter: TaskFilter = TaskFilter.ALL, sort: TaskSort = TaskSort.DEADLINE_ASC) -> List[Task]:
        """List tasks for display. Repeating templates are never listed."""
        query = {
            TaskFilter.ALL: TaskQuery(is_archived=False),
            TaskFilter.INCOMPLETE: TaskQuery(is_completed=False, is_archived=False),
            TaskFilter.COMPLETED: TaskQuery(is_completed=True, is_archived=False),
            TaskFilter.ARCHIVED: TaskQuery(is_archived=True),
        }[task_filter]
        tasks = [task for task in self.store.query(query) if task.role is not TaskRole.TEMPLATE]

        if sort is TaskSort.PRIORITY_DESC:
            tasks.sort(key=lambda task: (-task.priority.rank, task.created_at))
        elif sort is TaskSort.CREATED_ASC:
            tasks.sort(key=lambda task: task.created_at)
        elif sort is TaskSort.CREATED_DESC:
            tasks.sort(key=lambda task: task.created_at, reverse=True)
        else:
            tasks.sort(key=lambda task: (task.deadline is None, task.deadline or task.created_at))
        return tasks

    # Mutations

    async def create_task(self, task: Task) -> Task:
        task = self.validate(task)
        self._save(task)
        logger.info(f"📝 TASKS: Saved {task.title}")

        if task.role is TaskRole.TEMPLATE:
            await self._run_recurrence(self.generator.initialize(task), task)
        else:
            await self._schedule_quietly(task)
        return task

    async def update_task(self, task: Task) -> Task:
        existing = self.get_task(task.id)
        task = self.validate(task)
        self._save(task)
        logger.info(f"📝 TASKS: Updated {task.title}, rescheduling notifications")

        if TaskRole.TEMPLATE in (existing.role, task.role):
            await self.scheduler.cancel_task(task.id)
            await self._run_recurrence(self.generator.on_parent_edited(task), task)
            if task.role is not TaskRole.TEMPLATE:
                await self._schedule_quietly(task)
        else:
            await self._schedule_quietly(task)
        return task

    async def complete_task(self, task_id: str) -> Task:
        task = self.get_task(task_id)
        if task.is_completed:
            return task

        task.is_completed = True
        task.completed_at = self.clock()
        self._save(task)
        await self.scheduler.cancel_task(task.id)
        logger.info(f"✅ TASKS: Completed {task.title}")

        if task.role is TaskRole.INSTANCE:
            await self._run_recurrence(self.generator.on_completed(task), task)
        return task

    async def delete_task(self, task_id: str) -> None:
        task = self.get_task(task_id)
        await self.scheduler.cancel_task(task.id)
        try:
            self.store.delete(task)
        except StoreWriteFailed:
            raise
        except Exception as e:
            raise StoreWriteFailed("Failed to delete the task") from e
        logger.info(f"🗑️ TASKS: Deleted {task.title}")

    def archive_task(self, task_id: str) -> Task:
        return self.sweeper.archive(self.get_task(task_id))

    def unarchive_task(self, task_id: str) -> Task:
        return self.sweeper.unarchive(self.get_task(task_id))

    def auto_archive(self, grace_period_days: Optional[int] = None) -> int:
        return self.sweeper.sweep(grace_period_days)

    async def schedule_reminders(self, task_id: str) -> ScheduleResult:
        """Explicitly (re)schedule a task's notifications.

        Unlike saving, this surfaces AuthorizationDenied to the caller.
        """
        task = self.get_task(task_id)
        return await self.scheduler.reschedule(task)

    # Helpers

    @staticmethod
    def validate(task: Task) -> Task:
        """Re-run model validation on a possibly mutated task."""
        try:
            return Task.model_validate(task.model_dump())
        except ValidationError as e:
            errors = e.errors()
            message = errors[0]["msg"] if errors else "Task settings are invalid"
            raise TaskValidationError(message) from e

    def _save(self, task: Task) -> None:
        try:
            self.store.save(task)
        except StoreWriteFailed:
            raise
        except Exception as e:
            logger.error(f"TASKS: Failed to save {task.title}: {e}")
            raise StoreWriteFailed() from e

    async def _schedule_quietly(self, task: Task) -> Optional[ScheduleResult]:
        try:
            result = await self.scheduler.reschedule(task)
        except AuthorizationDenied:
            logger.warning(f"⚠️ TASKS: Notifications not permitted, {task.title} saved without reminders")
            return None
        except NotificationError as e:
            logger.error(f"TASKS: Failed to schedule notifications for {task.title}: {e}")
            return None

        if result.capacity_exceeded:
            logger.warning(f"⚠️ TASKS: Capacity reached, {task.title} has {result.scheduled} notifications")
        return result

    async def _run_recurrence(self, operation, task: Task) -> None:
        try:
            await operation
        except TaskError as e:
            logger.error(f"RECURRENCE: Failed to update instances of {task.title}: {e}")
