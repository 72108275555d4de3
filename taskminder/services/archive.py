"""Archive sweeper - archives tasks completed longer than a grace period ago."""

from datetime import timedelta
from typing import Optional

from ..errors import TaskValidationError
from ..logging_config import get_logger
from ..models.task import Task
from ..utils.dt import Clock, utc_now
from .task_store import TaskQuery, TaskStore

logger = get_logger(__name__)

DEFAULT_GRACE_PERIOD_DAYS = 7


class ArchiveSweeper:
    """Stateless batch transition from completed to archived."""

    def __init__(self, store: TaskStore, clock: Clock = utc_now, grace_period_days: int = DEFAULT_GRACE_PERIOD_DAYS):
        self.store = store
        self.clock = clock
        self.grace_period_days = grace_period_days

    def sweep(self, grace_period_days: Optional[int] = None) -> int:
        """Archive completed tasks whose completion is older than the grace period.

        Returns the number of archived tasks. Running it again without new
        completions archives nothing.
        """
        days = self.grace_period_days if grace_period_days is None else grace_period_days
        threshold = self.clock() - timedelta(days=days)

        candidates = self.store.query(
            TaskQuery(is_completed=True, is_archived=False, completed_before=threshold)
        )
        if not candidates:
            return 0

        for task in candidates:
            task.is_archived = True
        self.store.save_all(candidates)

        logger.info(f"🗄️ ARCHIVE: Archived {len(candidates)} tasks completed before {threshold.isoformat()}")
        return len(candidates)

    def archive(self, task: Task) -> Task:
        """Archive a single completed task right away."""
        if not task.is_completed:
            raise TaskValidationError("Only completed tasks can be archived")
        task.is_archived = True
        self.store.save(task)
        return task

    def unarchive(self, task: Task) -> Task:
        """Restore an archived task.

        Archival is computed from ``completed_at``, so the task becomes eligible
        again on the next sweep unless it is reopened.
        """
        task.is_archived = False
        self.store.save(task)
        return task
