from datetime import datetime, timedelta, timezone

import pytest

from taskminder.config import Settings
from taskminder.models.task import NotificationKind, NotificationSpec, Task
from taskminder.services.delivery import InMemoryDeliveryService
from taskminder.services.engine import build_engine
from taskminder.services.task_store import InMemoryTaskStore

NOW = datetime(2025, 3, 15, 3, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock shared by every engine component in a test."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def remind(offset: int = 60, interval: int = 15) -> NotificationSpec:
    return NotificationSpec(kind=NotificationKind.REMIND, offset_minutes=offset, interval_minutes=interval)


def once() -> NotificationSpec:
    return NotificationSpec(kind=NotificationKind.ONCE)


def make_task(title: str = "Write report", **kwargs) -> Task:
    kwargs.setdefault("created_at", NOW - timedelta(days=1))
    return Task(title=title, **kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return Settings(timezone="UTC", supabase_url=None, supabase_key=None)


@pytest.fixture
def store():
    return InMemoryTaskStore()


@pytest.fixture
def delivery(clock):
    return InMemoryDeliveryService(capacity=64, clock=clock)


@pytest.fixture
def engine(store, delivery, clock, settings):
    return build_engine(store=store, delivery=delivery, clock=clock, settings=settings)

