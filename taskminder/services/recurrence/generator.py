"""Recurrence generator - keeps a rolling window of repeating task instances."""

from datetime import datetime
from typing import List, Optional
from zoneinfo import ZoneInfo

from ...errors import NotificationError
from ...logging_config import get_logger
from ...models.task import Task, TaskRole, TimePointKind
from ...utils.dt import Clock, as_local, as_utc, local_timezone, utc_now
from ..reminders.scheduler import ReminderScheduler
from ..task_store import TaskQuery, TaskStore
from .calculator import next_occurrence

logger = get_logger(__name__)

DEFAULT_INITIAL_INSTANCES = 3
DEFAULT_MIN_PENDING = 2


class RecurrenceGenerator:
    """Materializes concrete occurrences of repeating templates.

    Only the template carries the repeat rule. Instances point back at the
    template through ``parent_task_id`` and never repeat on their own.
    """

    def __init__(
        self,
        store: TaskStore,
        scheduler: ReminderScheduler,
        clock: Clock = utc_now,
        tz: Optional[ZoneInfo] = None,
        initial_instances: int = DEFAULT_INITIAL_INSTANCES,
        min_pending: int = DEFAULT_MIN_PENDING,
    ):
        self.store = store
        self.scheduler = scheduler
        self.clock = clock
        self.tz = tz or local_timezone()
        self.initial_instances = initial_instances
        self.min_pending = min_pending

    async def initialize(self, parent: Task) -> List[Task]:
        """Generate the first instances of a repeating template."""
        if not parent.is_repeating or parent.repeat_pattern is None:
            return []

        created: List[Task] = []
        current = parent.anchor_date or self.clock()
        for _ in range(self.initial_instances):
            next_date = self._next_date(current, parent)
            if next_date is None:
                break
            created.append(await self._create_instance(parent, next_date))
            current = next_date

        logger.info(f"✨ RECURRENCE: Generated {len(created)} instances of {parent.title}")
        return created

    async def on_completed(self, instance: Task) -> Optional[Task]:
        """Generate one more instance when fewer than ``min_pending`` remain."""
        if instance.role is not TaskRole.INSTANCE:
            return None

        parent = self.store.fetch(instance.parent_task_id)
        if parent is None or not parent.is_repeating or parent.repeat_pattern is None:
            logger.info(f"RECURRENCE: No repeating template for {instance.title}, nothing to generate")
            return None

        siblings = self.store.query(TaskQuery(parent_task_id=parent.id))
        pending = [task for task in siblings if not task.is_completed and task.id != instance.id]
        if len(pending) >= self.min_pending:
            return None

        known_dates = [task.anchor_date for task in siblings + [instance] if task.anchor_date is not None]
        latest = max(known_dates, default=None) or self.clock()
        next_date = self._next_date(latest, parent)
        if next_date is None:
            logger.info(f"RECURRENCE: {parent.title} reached its repeat end date")
            return None
        return await self._create_instance(parent, next_date)

    async def on_parent_edited(self, parent: Task) -> List[Task]:
        """Delete every incomplete instance and regenerate from the new settings."""
        pending = self.pending_instances(parent.id)
        for task in pending:
            await self.scheduler.cancel_task(task.id)
            self.store.delete(task)
        logger.info(f"📝 RECURRENCE: Removed {len(pending)} incomplete instances of {parent.title}")

        return await self.initialize(parent)

    def pending_instances(self, parent_id: str) -> List[Task]:
        """Incomplete instances of a template, earliest first."""
        tasks = self.store.query(TaskQuery(parent_task_id=parent_id, is_completed=False))
        return sorted(tasks, key=lambda task: (task.anchor_date is None, task.anchor_date or task.created_at))

    def _next_date(self, current: datetime, parent: Task) -> Optional[datetime]:
        next_date = as_utc(next_occurrence(as_local(current, self.tz), parent.repeat_pattern))
        if parent.repeat_end_date is not None and next_date > parent.repeat_end_date:
            return None
        return next_date

    async def _create_instance(self, parent: Task, when: datetime) -> Task:
        instance = build_instance(parent, when, created_at=self.clock())
        self.store.save(instance)
        try:
            await self.scheduler.schedule_task(instance)
        except NotificationError as e:
            logger.warning(f"RECURRENCE: Could not schedule notifications for {instance.title}: {e}")
        return instance


def build_instance(parent: Task, when: datetime, created_at: Optional[datetime] = None) -> Task:
    """Copy a template into a concrete occurrence anchored at ``when``.

    The anchor time point (deadline if the template has one) moves to
    ``when``; the other time point keeps its distance to the anchor.
    """
    start_time = None
    deadline = None
    if parent.anchor_kind is TimePointKind.START_TIME:
        start_time = when
    else:
        deadline = when
        if parent.start_time is not None and parent.deadline is not None:
            start_time = when - (parent.deadline - parent.start_time)

    return Task(
        title=parent.title,
        category_id=parent.category_id,
        priority=parent.priority,
        start_time=start_time,
        deadline=deadline,
        start_time_notification=parent.start_time_notification.model_copy(),
        deadline_notification=parent.deadline_notification.model_copy(),
        parent_task_id=parent.parent_task_id or parent.id,
        created_at=created_at or utc_now(),
    )
