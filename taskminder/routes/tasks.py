"""Task routes delegating to the task manager."""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..logging_config import get_logger
from ..models.repeat import RepeatPattern
from ..models.task import NotificationSpec, Priority, Task
from ..services.engine import ReminderEngine, get_engine
from ..services.task_manager import TaskFilter, TaskSort

logger = get_logger(__name__)

router = APIRouter(prefix="/tasks", tags=["tasks"])


class TaskInput(BaseModel):
    """User-editable task fields."""
    title: str
    category_id: Optional[str] = None
    priority: Priority = Priority.MEDIUM
    start_time: Optional[datetime] = None
    deadline: Optional[datetime] = None
    start_time_notification: NotificationSpec = Field(default_factory=NotificationSpec)
    deadline_notification: NotificationSpec = Field(default_factory=NotificationSpec)
    is_repeating: bool = False
    repeat_pattern: Optional[RepeatPattern] = None
    repeat_end_date: Optional[datetime] = None

    def fields(self) -> dict:
        return {name: getattr(self, name) for name in type(self).model_fields}


class ScheduleResponse(BaseModel):
    ok: bool = True
    scheduled: int
    capacity_exceeded: bool


@router.get("", response_model=List[Task])
async def list_tasks(
    filter: TaskFilter = TaskFilter.ALL,
    sort: TaskSort = TaskSort.DEADLINE_ASC,
    engine: ReminderEngine = Depends(get_engine),
) -> List[Task]:
    """List tasks (repeating templates are hidden)."""
    return engine.tasks.list_tasks(filter, sort)


@router.post("", response_model=Task, status_code=201)
async def create_task(payload: TaskInput, engine: ReminderEngine = Depends(get_engine)) -> Task:
    """Create a task and schedule its notifications."""
    task = Task.model_validate(payload.fields())
    return await engine.tasks.create_task(task)


@router.get("/{task_id}", response_model=Task)
async def get_task(task_id: str, engine: ReminderEngine = Depends(get_engine)) -> Task:
    return engine.tasks.get_task(task_id)


@router.put("/{task_id}", response_model=Task)
async def update_task(task_id: str, payload: TaskInput, engine: ReminderEngine = Depends(get_engine)) -> Task:
    """Edit a task. Its notifications are cancelled and scheduled again."""
    existing = engine.tasks.get_task(task_id)
    updated = existing.model_copy(update=payload.fields())
    return await engine.tasks.update_task(updated)


@router.post("/{task_id}/complete", response_model=Task)
async def complete_task(task_id: str, engine: ReminderEngine = Depends(get_engine)) -> Task:
    return await engine.tasks.complete_task(task_id)


@router.post("/{task_id}/archive", response_model=Task)
async def archive_task(task_id: str, engine: ReminderEngine = Depends(get_engine)) -> Task:
    return engine.tasks.archive_task(task_id)


@router.post("/{task_id}/unarchive", response_model=Task)
async def unarchive_task(task_id: str, engine: ReminderEngine = Depends(get_engine)) -> Task:
    return engine.tasks.unarchive_task(task_id)


@router.post("/{task_id}/reminders", response_model=ScheduleResponse)
async def schedule_reminders(task_id: str, engine: ReminderEngine = Depends(get_engine)) -> ScheduleResponse:
    """Explicitly reschedule a task's notifications (surfaces permission errors)."""
    result = await engine.tasks.schedule_reminders(task_id)
    return ScheduleResponse(scheduled=result.scheduled, capacity_exceeded=result.capacity_exceeded)


@router.delete("/{task_id}")
async def delete_task(task_id: str, engine: ReminderEngine = Depends(get_engine)) -> JSONResponse:
    await engine.tasks.delete_task(task_id)
    return JSONResponse({"ok": True, "message": "Task deleted"})
