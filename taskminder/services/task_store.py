"""Task store implementations.

The store is an external collaborator of the reminder engine: the engine
fetches, queries, saves and deletes tasks through it but never assumes
transactions spanning the store and the delivery service.
"""

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from ..errors import StoreWriteFailed
from ..logging_config import get_logger
from ..models.task import Task
from ..utils.dt import as_utc
from .supabase_client import TASKS_TABLE

logger = get_logger(__name__)


@dataclass
class TaskQuery:
    """Filter for task queries. None means "don't care"."""

    is_completed: Optional[bool] = None
    is_archived: Optional[bool] = None
    is_repeating: Optional[bool] = None
    parent_task_id: Optional[str] = None
    completed_before: Optional[datetime] = None

    def matches(self, task: Task) -> bool:
        if self.is_completed is not None and task.is_completed != self.is_completed:
            return False
        if self.is_archived is not None and task.is_archived != self.is_archived:
            return False
        if self.is_repeating is not None and task.is_repeating != self.is_repeating:
            return False
        if self.parent_task_id is not None and task.parent_task_id != self.parent_task_id:
            return False
        if self.completed_before is not None:
            if task.completed_at is None or task.completed_at >= as_utc(self.completed_before):
                return False
        return True


class TaskStore:
    """Interface of the task store consumed by the engine."""

    def fetch(self, task_id: str) -> Optional[Task]:
        raise NotImplementedError

    def query(self, query: Optional[TaskQuery] = None) -> List[Task]:
        raise NotImplementedError

    def save(self, task: Task) -> None:
        raise NotImplementedError

    def save_all(self, tasks: Iterable[Task]) -> None:
        """Persist several tasks in one write."""
        raise NotImplementedError

    def delete(self, task: Task) -> None:
        raise NotImplementedError


class InMemoryTaskStore(TaskStore):
    """Process-local store. Writes are serialized by a lock."""

    def __init__(self, tasks: Optional[Iterable[Task]] = None):
        self._tasks: Dict[str, Task] = {}
        self._lock = threading.Lock()
        for task in tasks or []:
            self._tasks[task.id] = task.model_copy(deep=True)

    def fetch(self, task_id: str) -> Optional[Task]:
        task = self._tasks.get(task_id)
        return task.model_copy(deep=True) if task else None

    def query(self, query: Optional[TaskQuery] = None) -> List[Task]:
        query = query or TaskQuery()
        return [task.model_copy(deep=True) for task in list(self._tasks.values()) if query.matches(task)]

    def save(self, task: Task) -> None:
        with self._lock:
            self._tasks[task.id] = task.model_copy(deep=True)

    def save_all(self, tasks: Iterable[Task]) -> None:
        with self._lock:
            for task in tasks:
                self._tasks[task.id] = task.model_copy(deep=True)

    def delete(self, task: Task) -> None:
        with self._lock:
            self._tasks.pop(task.id, None)

    def __len__(self) -> int:
        return len(self._tasks)


class SupabaseTaskStore(TaskStore):
    """Task store backed by the Supabase ``tasks`` table."""

    def __init__(self, client):
        self.client = client

    def fetch(self, task_id: str) -> Optional[Task]:
        result = self.client.table(TASKS_TABLE).select("*").eq("id", task_id).limit(1).execute()
        if not result.data:
            return None
        return Task.model_validate(result.data[0])

    def query(self, query: Optional[TaskQuery] = None) -> List[Task]:
        query = query or TaskQuery()
        builder = self.client.table(TASKS_TABLE).select("*")

        if query.is_completed is not None:
            builder = builder.eq("is_completed", query.is_completed)
        if query.is_archived is not None:
            builder = builder.eq("is_archived", query.is_archived)
        if query.is_repeating is not None:
            builder = builder.eq("is_repeating", query.is_repeating)
        if query.parent_task_id is not None:
            builder = builder.eq("parent_task_id", query.parent_task_id)
        if query.completed_before is not None:
            builder = builder.lt("completed_at", as_utc(query.completed_before).isoformat())

        result = builder.execute()
        tasks = []
        for row in result.data or []:
            try:
                tasks.append(Task.model_validate(row))
            except ValueError as e:
                logger.warning(f"Skipping unreadable task row {row.get('id')}: {e}")
        return tasks

    def save(self, task: Task) -> None:
        try:
            self.client.table(TASKS_TABLE).upsert(task.model_dump(mode="json")).execute()
        except Exception as e:
            logger.error(f"Failed to save task {task.id}: {e}")
            raise StoreWriteFailed() from e

    def save_all(self, tasks: Iterable[Task]) -> None:
        rows = [task.model_dump(mode="json") for task in tasks]
        if not rows:
            return
        try:
            self.client.table(TASKS_TABLE).upsert(rows).execute()
        except Exception as e:
            logger.error(f"Failed to save {len(rows)} tasks: {e}")
            raise StoreWriteFailed() from e

    def delete(self, task: Task) -> None:
        try:
            self.client.table(TASKS_TABLE).delete().eq("id", task.id).execute()
        except Exception as e:
            logger.error(f"Failed to delete task {task.id}: {e}")
            raise StoreWriteFailed("Failed to delete the task") from e
