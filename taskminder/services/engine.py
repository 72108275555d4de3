"""Wiring of the reminder engine collaborators."""

from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache
from typing import Optional

from ..config import Settings, get_settings
from ..logging_config import get_logger
from ..utils.dt import Clock, local_timezone, utc_now
from .archive import ArchiveSweeper
from .delivery import DeliveryService, InMemoryDeliveryService, SupabaseDeliveryService
from .recurrence.generator import RecurrenceGenerator
from .reminders.refresh import RefreshCoordinator
from .reminders.scheduler import ReminderScheduler
from .supabase_client import get_supabase_client
from .task_manager import TaskManager
from .task_store import InMemoryTaskStore, SupabaseTaskStore, TaskStore

logger = get_logger(__name__)


@dataclass
class ReminderEngine:
    """All engine components sharing one store, delivery service and clock."""

    settings: Settings
    store: TaskStore
    delivery: DeliveryService
    scheduler: ReminderScheduler
    refresh: RefreshCoordinator
    generator: RecurrenceGenerator
    sweeper: ArchiveSweeper
    tasks: TaskManager


def build_engine(
    store: Optional[TaskStore] = None,
    delivery: Optional[DeliveryService] = None,
    clock: Clock = utc_now,
    settings: Optional[Settings] = None,
) -> ReminderEngine:
    """Assemble an engine. Missing collaborators come from settings."""
    settings = settings or get_settings()

    if store is None or delivery is None:
        client = get_supabase_client() if settings.supabase_enabled else None
        if client is not None:
            store = store or SupabaseTaskStore(client)
            delivery = delivery or SupabaseDeliveryService(client, settings.notification_capacity, clock)
        else:
            logger.info("Using in-memory task store and delivery service")
            store = store or InMemoryTaskStore()
            delivery = delivery or InMemoryDeliveryService(settings.notification_capacity, clock)

    scheduler = ReminderScheduler(delivery, clock=clock, buffer_size=settings.reminder_buffer_size, store=store)
    refresh = RefreshCoordinator(
        store,
        delivery,
        scheduler,
        clock=clock,
        soft_limit=settings.pending_soft_limit,
        delivered_retention=timedelta(hours=settings.delivered_retention_hours),
    )
    generator = RecurrenceGenerator(
        store,
        scheduler,
        clock=clock,
        tz=local_timezone(settings.timezone),
        initial_instances=settings.recurrence_initial_instances,
        min_pending=settings.recurrence_min_pending,
    )
    sweeper = ArchiveSweeper(store, clock=clock, grace_period_days=settings.archive_grace_days)
    tasks = TaskManager(store, scheduler, generator, sweeper, clock=clock)

    return ReminderEngine(
        settings=settings,
        store=store,
        delivery=delivery,
        scheduler=scheduler,
        refresh=refresh,
        generator=generator,
        sweeper=sweeper,
        tasks=tasks,
    )


@lru_cache(maxsize=1)
def get_engine() -> ReminderEngine:
    """Get the process-wide engine."""
    return build_engine()
