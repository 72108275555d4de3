"""Refresh coordinator - reconciles the delivery service with active tasks."""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import List

from ...errors import AuthorizationDenied, NotificationError
from ...logging_config import get_logger
from ...models.task import Task, TaskRole, TimePointKind
from ...utils.dt import Clock, utc_now
from ..delivery import DeliveryService
from ..task_store import TaskQuery, TaskStore
from .scheduler import ReminderScheduler

logger = get_logger(__name__)

DEFAULT_SOFT_LIMIT = 50
DEFAULT_DELIVERED_RETENTION = timedelta(hours=24)


@dataclass
class RefreshResult:
    """Summary of one refresh pass."""

    added: int = 0
    capacity_exceeded: bool = False
    pruned_delivered: int = 0
    pruned_pending: int = 0
    failures: List[str] = field(default_factory=list)


class RefreshCoordinator:
    """Keeps every active reminder stream topped up to the buffer size.

    Invoked opportunistically (foreground, delivery, background wake). Tasks
    are processed highest priority first so they get first claim on the shared
    delivery capacity. Per-task failures are logged and never abort the pass.
    """

    def __init__(
        self,
        store: TaskStore,
        delivery: DeliveryService,
        scheduler: ReminderScheduler,
        clock: Clock = utc_now,
        soft_limit: int = DEFAULT_SOFT_LIMIT,
        delivered_retention: timedelta = DEFAULT_DELIVERED_RETENTION,
    ):
        self.store = store
        self.delivery = delivery
        self.scheduler = scheduler
        self.clock = clock
        self.soft_limit = soft_limit
        self.delivered_retention = delivered_retention

    async def refresh(self) -> RefreshResult:
        """Prune stale delivery records and top up every active task."""
        result = RefreshResult()
        now = self.clock()

        pending = await self.delivery.list_pending()
        delivered = await self.delivery.list_delivered()
        logger.info(f"🔄 REFRESH: Starting with {len(pending)} pending ({len(delivered)} delivered)")

        cutoff = now - self.delivered_retention
        old_delivered = [item.id for item in delivered if item.delivered_at < cutoff]
        if old_delivered:
            await self.delivery.remove_delivered(old_delivered)
            result.pruned_delivered = len(old_delivered)
            logger.info(f"🗑️ REFRESH: Removed {len(old_delivered)} old delivered notifications")

        if len(pending) > self.soft_limit:
            outdated = [item.id for item in pending if item.when < now]
            if outdated:
                await self.delivery.cancel(outdated)
                result.pruned_pending = len(outdated)
                logger.info(f"🗑️ REFRESH: Removed {len(outdated)} past pending notifications")

        for task in self.active_tasks():
            for kind in TimePointKind:
                if not task.has_reminder(kind):
                    continue
                try:
                    outcome = await self.scheduler.top_up(task, kind)
                except AuthorizationDenied:
                    logger.warning("⚠️ REFRESH: Notification permission denied, stopping refresh")
                    result.failures.append(f"{task.id}:{kind.value}: authorization denied")
                    return result
                except NotificationError as e:
                    logger.error(f"REFRESH: Failed to top up {task.title} ({kind.display_name}): {e}")
                    result.failures.append(f"{task.id}:{kind.value}: {e}")
                    continue
                except Exception as e:
                    logger.exception(f"REFRESH: Unexpected error topping up {task.title}: {e}")
                    result.failures.append(f"{task.id}:{kind.value}: {e}")
                    continue

                if outcome.scheduled:
                    logger.info(f"📝 REFRESH: {task.title} ({kind.display_name}): +{outcome.scheduled}")
                result.added += outcome.scheduled
                result.capacity_exceeded = result.capacity_exceeded or outcome.capacity_exceeded

        logger.info(
            f"✅ REFRESH: Done (+{result.added} added"
            f"{', capacity reached' if result.capacity_exceeded else ''})"
        )
        return result

    def active_tasks(self) -> List[Task]:
        """Incomplete, unarchived tasks with at least one reminder, by priority then age."""
        tasks = self.store.query(TaskQuery(is_completed=False, is_archived=False))
        active = [task for task in tasks if task.role is not TaskRole.TEMPLATE and task.has_any_reminder]
        active.sort(key=lambda task: (-task.priority.rank, task.created_at))
        return active
