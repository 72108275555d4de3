"""Reminder scheduler - materializes a small buffer of each reminder stream."""

import asyncio
import weakref
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import AsyncIterator, List, Optional

from ...errors import CapacityExceeded, InvalidScheduleTime
from ...logging_config import get_logger
from ...models.notification import (
    InterruptionLevel,
    NotificationContent,
    NotificationRequest,
    RequestMode,
    task_prefixes,
    timepoint_prefixes,
)
from ...models.task import NotificationKind, Priority, Task, TaskRole, TimePointKind
from ...utils.dt import Clock, format_short, utc_now
from ..delivery import DeliveryService
from ..task_store import TaskStore
from .window import next_instants

logger = get_logger(__name__)

DEFAULT_BUFFER_SIZE = 5

_INTERRUPTION_LEVELS = {
    Priority.HIGH: InterruptionLevel.TIME_SENSITIVE,
    Priority.MEDIUM: InterruptionLevel.ACTIVE,
    Priority.LOW: InterruptionLevel.PASSIVE,
}


@dataclass
class ScheduleResult:
    """Outcome of a scheduling pass. Partial progress is kept on capacity errors."""

    scheduled: int = 0
    capacity_exceeded: bool = False

    def merge(self, other: "ScheduleResult") -> "ScheduleResult":
        self.scheduled += other.scheduled
        self.capacity_exceeded = self.capacity_exceeded or other.capacity_exceeded
        return self


class TaskLocks:
    """One asyncio lock per task id.

    A lock lives only while some caller holds or waits on it.
    """

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    @asynccontextmanager
    async def hold(self, task_id: str) -> AsyncIterator[None]:
        lock = self._locks.get(task_id)
        if lock is None:
            lock = self._locks[task_id] = asyncio.Lock()
        async with lock:
            yield

    def __len__(self) -> int:
        return len(self._locks)


def describe_remaining(label: str, target: datetime, when: datetime, is_final: bool) -> str:
    """Notification body describing the time left until the target."""
    remaining = int((target - when).total_seconds() / 60)
    if is_final or remaining <= 0:
        return f"{label} now"
    if remaining > 60:
        hours, minutes = divmod(remaining, 60)
        return f"{label} in {hours}h {minutes}m" if minutes else f"{label} in {hours}h"
    return f"{label} in {remaining} min"


def build_content(task: Task, request: NotificationRequest) -> NotificationContent:
    """Build the delivery payload for one request."""
    title = task.title
    reference = task.start_time or task.deadline
    if reference is not None:
        title = f"{task.title} ({format_short(reference)})"

    label = request.timepoint.display_name
    target = task.time_point(request.timepoint) or request.scheduled_at
    if request.mode is RequestMode.ONCE:
        body = f"{label} now"
        category = "NOTIFICATION_ONCE"
    else:
        body = describe_remaining(label, target, request.scheduled_at, request.is_final)
        category = "NOTIFICATION_REMINDER"

    return NotificationContent(
        title=title,
        body=body,
        category=category,
        interruption_level=_INTERRUPTION_LEVELS[task.priority],
        task_id=task.id,
        is_final=request.is_final,
        extra={"timepoint": request.timepoint.value},
    )


class ReminderScheduler:
    """Schedules notification requests for task time points.

    Keeps at most ``buffer_size`` requests of each (task, time point) reminder
    stream in the delivery service. The refresh coordinator tops the buffer up
    as requests fire.

    With a store, the task is read again once its lock is held, so a task
    completed or deleted in the meantime gets no new requests.
    """

    def __init__(
        self,
        delivery: DeliveryService,
        clock: Clock = utc_now,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        locks: Optional[TaskLocks] = None,
        store: Optional[TaskStore] = None,
    ):
        self.delivery = delivery
        self.clock = clock
        self.buffer_size = buffer_size
        self.locks = locks or TaskLocks()
        self.store = store

    async def materialize(self, task: Task, kind: TimePointKind) -> ScheduleResult:
        """Schedule the opening requests of one time point.

        AuthorizationDenied propagates to the caller.
        """
        async with self.locks.hold(task.id):
            current = self._current(task)
            if current is None:
                return ScheduleResult()
            return await self._materialize(current, kind)

    async def schedule_task(self, task: Task) -> ScheduleResult:
        """Schedule every time point of a task."""
        result = ScheduleResult()
        async with self.locks.hold(task.id):
            current = self._current(task)
            if current is None:
                return result
            for kind in TimePointKind:
                result.merge(await self._materialize(current, kind))
        return result

    async def reschedule(self, task: Task) -> ScheduleResult:
        """Cancel the task's outstanding requests, then schedule again."""
        result = ScheduleResult()
        async with self.locks.hold(task.id):
            current = self._current(task)
            for kind in TimePointKind:
                await self.delivery.cancel_matching(timepoint_prefixes(task.id, kind))
                if current is not None:
                    result.merge(await self._materialize(current, kind))
        return result

    async def cancel_task(self, task_id: str) -> int:
        """Cancel every pending request of a task."""
        async with self.locks.hold(task_id):
            cancelled = await self.delivery.cancel_matching(task_prefixes(task_id))
        if cancelled:
            logger.info(f"🗑️ SCHEDULER: Cancelled {len(cancelled)} notifications for task {task_id}")
        return len(cancelled)

    async def cancel_timepoint(self, task_id: str, kind: TimePointKind) -> int:
        async with self.locks.hold(task_id):
            cancelled = await self.delivery.cancel_matching(timepoint_prefixes(task_id, kind))
        return len(cancelled)

    async def top_up(self, task: Task, kind: TimePointKind) -> ScheduleResult:
        """Refill a reminder stream back to the buffer size.

        Continues from the latest pending request of the stream, or from the
        stream's start rule when nothing is pending.
        """
        if not self._is_schedulable(task) or not task.has_reminder(kind):
            return ScheduleResult()

        async with self.locks.hold(task.id):
            task = self._current(task)
            if task is None or not self._is_schedulable(task) or not task.has_reminder(kind):
                return ScheduleResult()

            now = self.clock()
            prefix = timepoint_prefixes(task.id, kind)[1]
            pending = [
                item for item in await self.delivery.list_pending()
                if item.id.startswith(prefix) and item.when > now
            ]
            needed = self.buffer_size - len(pending)
            if needed <= 0:
                return ScheduleResult()

            after = max((item.when for item in pending), default=None)
            return await self._fill(task, kind, needed, after)

    async def _materialize(self, task: Task, kind: TimePointKind) -> ScheduleResult:
        if not self._is_schedulable(task):
            return ScheduleResult()
        instant = task.time_point(kind)
        if instant is None:
            return ScheduleResult()

        notification_kind = task.notification_spec(kind).kind
        if notification_kind is NotificationKind.NONE:
            return ScheduleResult()
        if notification_kind is NotificationKind.ONCE:
            return await self._schedule_once(task, kind, instant)
        if notification_kind is NotificationKind.REMIND:
            result = await self._fill(task, kind, self.buffer_size, after=None)
            end = task.reminder_end(kind)
            logger.info(
                f"⏰ SCHEDULER: {task.title} - {kind.display_name}: {result.scheduled} reminders "
                f"({'until completion' if end is None else f'until {end.isoformat()}'})"
            )
            return result
        raise ValueError(f"Unhandled notification kind: {notification_kind}")

    async def _schedule_once(self, task: Task, kind: TimePointKind, instant: datetime) -> ScheduleResult:
        if instant <= self.clock():
            logger.info(f"⏰ SCHEDULER: {task.title} - {kind.display_name} already passed, skipping")
            return ScheduleResult()

        request = NotificationRequest(task.id, kind, instant, is_final=True, mode=RequestMode.ONCE)
        return await self._submit([request], task)

    async def _fill(self, task: Task, kind: TimePointKind, needed: int, after: Optional[datetime]) -> ScheduleResult:
        spec = task.notification_spec(kind)
        target = task.time_point(kind)
        now = self.clock()

        window = next_instants(
            target=target,
            offset_minutes=spec.offset_minutes,
            interval_minutes=spec.interval_minutes,
            end=task.reminder_end(kind),
            now=now,
            # one spare candidate in case the first is clamped to now
            count=needed + 1,
            after=after,
        )
        requests: List[NotificationRequest] = [
            NotificationRequest(task.id, kind, candidate.instant, is_final=candidate.is_final)
            for candidate in window
            if candidate.instant > now
        ]
        return await self._submit(requests[:needed], task)

    async def _submit(self, requests: List[NotificationRequest], task: Task) -> ScheduleResult:
        result = ScheduleResult()
        for request in requests:
            try:
                await self.delivery.schedule(request.id, request.scheduled_at, build_content(task, request))
            except InvalidScheduleTime:
                logger.debug(f"⏰ SCHEDULER: {request.id} is already in the past, skipping")
                continue
            except CapacityExceeded:
                logger.warning(
                    f"⏰ SCHEDULER: Notification capacity reached while scheduling {task.title} "
                    f"({result.scheduled}/{len(requests)} scheduled)"
                )
                result.capacity_exceeded = True
                break
            result.scheduled += 1
        return result

    def _current(self, task: Task) -> Optional[Task]:
        if self.store is None:
            return task
        return self.store.fetch(task.id)

    @staticmethod
    def _is_schedulable(task: Task) -> bool:
        return task.role is not TaskRole.TEMPLATE and not task.is_completed and not task.is_archived
