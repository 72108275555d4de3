from datetime import timedelta

import pytest

from taskminder.errors import AuthorizationDenied
from taskminder.models.notification import InterruptionLevel, NotificationContent
from taskminder.models.repeat import DailyPattern
from taskminder.models.task import Priority, TimePointKind
from taskminder.services.delivery import InMemoryDeliveryService
from taskminder.services.reminders.scheduler import ReminderScheduler, TaskLocks, describe_remaining
from taskminder.services.task_store import InMemoryTaskStore
from taskminder.utils.dt import epoch_seconds

from conftest import NOW, make_task, once, remind


def minutes(n):
    return NOW + timedelta(minutes=n)


@pytest.fixture
def scheduler(delivery, clock):
    return ReminderScheduler(delivery, clock=clock, buffer_size=5)


async def pending_ids(delivery):
    return [item.id for item in await delivery.list_pending()]


async def test_deadline_reminders_fill_the_buffer(scheduler, delivery):
    task = make_task(deadline=minutes(120), deadline_notification=remind(60, 15))

    result = await scheduler.schedule_task(task)

    pending = await delivery.list_pending()
    assert result.scheduled == 5
    assert not result.capacity_exceeded
    assert [item.when for item in pending] == [minutes(60), minutes(75), minutes(90), minutes(105), minutes(120)]
    assert pending[0].id == f"deadline_reminder_{task.id}_{epoch_seconds(minutes(60))}"
    assert delivery.content_for(pending[-1].id).is_final
    assert delivery.content_for(pending[-1].id).body == "Deadline now"
    assert delivery.content_for(pending[0].id).body == "Deadline in 60 min"


async def test_once_notification_at_time_point(scheduler, delivery):
    task = make_task(deadline=minutes(90), deadline_notification=once())

    await scheduler.schedule_task(task)

    assert await pending_ids(delivery) == [f"deadline_once_{task.id}"]
    content = delivery.content_for(f"deadline_once_{task.id}")
    assert content.category == "NOTIFICATION_ONCE"
    assert content.body == "Deadline now"
    assert content.title.startswith("Write report (")


async def test_once_notification_in_the_past_is_skipped(scheduler, delivery):
    task = make_task(deadline=NOW - timedelta(minutes=5), deadline_notification=once())

    result = await scheduler.schedule_task(task)

    assert result.scheduled == 0
    assert await pending_ids(delivery) == []


async def test_start_time_stream_ends_at_start_when_deadline_exists(scheduler, delivery):
    task = make_task(
        start_time=minutes(60),
        deadline=minutes(180),
        start_time_notification=remind(30, 10),
    )

    await scheduler.schedule_task(task)

    pending = await delivery.list_pending()
    assert [item.when for item in pending] == [minutes(30), minutes(40), minutes(50), minutes(60)]
    assert all(item.id.startswith(f"starttime_reminder_{task.id}_") for item in pending)


async def test_both_time_points_are_independent(scheduler, delivery):
    task = make_task(
        start_time=minutes(60),
        deadline=minutes(180),
        start_time_notification=once(),
        deadline_notification=remind(60, 15),
    )

    result = await scheduler.schedule_task(task)

    ids = await pending_ids(delivery)
    assert result.scheduled == 6
    assert f"starttime_once_{task.id}" in ids
    assert len([i for i in ids if i.startswith(f"deadline_reminder_{task.id}")]) == 5


async def test_templates_and_completed_tasks_are_not_scheduled(scheduler, delivery):
    template = make_task(
        deadline=minutes(120),
        deadline_notification=remind(),
        is_repeating=True,
        repeat_pattern=DailyPattern(),
    )
    completed = make_task(deadline=minutes(120), deadline_notification=remind(), is_completed=True, completed_at=NOW)

    await scheduler.schedule_task(template)
    await scheduler.schedule_task(completed)

    assert await pending_ids(delivery) == []


async def test_reschedule_replaces_previous_requests(scheduler, delivery):
    task = make_task(deadline=minutes(120), deadline_notification=remind(60, 15))
    await scheduler.schedule_task(task)

    task.deadline = minutes(240)
    await scheduler.reschedule(task)

    pending = await delivery.list_pending()
    assert len(pending) == 5
    assert pending[0].when == minutes(180)


async def test_cancel_task_covers_legacy_ids(scheduler, delivery):
    task = make_task(deadline=minutes(120), deadline_notification=remind())
    other = make_task("Other", deadline=minutes(120), deadline_notification=once())
    await scheduler.schedule_task(task)
    await scheduler.schedule_task(other)
    content = NotificationContent(title="old", body="old", category="NOTIFICATION_REMINDER")
    delivery.put_pending(f"alarm_{task.id}", minutes(30), content)
    delivery.put_pending(f"reminder_{task.id}", minutes(30), content)

    cancelled = await scheduler.cancel_task(task.id)

    assert cancelled == 7
    assert await pending_ids(delivery) == [f"deadline_once_{other.id}"]


async def test_top_up_continues_after_latest_pending(scheduler, delivery, clock):
    task = make_task(deadline=minutes(240), deadline_notification=remind(180, 15))
    await scheduler.schedule_task(task)

    clock.advance(minutes=61)
    delivered = await delivery.deliver_due()
    result = await scheduler.top_up(task, TimePointKind.DEADLINE)

    pending = await delivery.list_pending()
    assert len(delivered) == 1
    assert result.scheduled == 1
    assert len(pending) == 5
    assert pending[-1].when == minutes(135)


async def test_top_up_is_noop_when_buffer_is_full(scheduler, delivery):
    task = make_task(deadline=minutes(600), deadline_notification=remind(300, 15))
    await scheduler.schedule_task(task)

    result = await scheduler.top_up(task, TimePointKind.DEADLINE)

    assert result.scheduled == 0
    assert len(await delivery.list_pending()) == 5


async def test_capacity_keeps_partial_progress(clock):
    delivery = InMemoryDeliveryService(capacity=3, clock=clock)
    scheduler = ReminderScheduler(delivery, clock=clock)
    task = make_task(deadline=minutes(120), deadline_notification=remind(60, 15))

    result = await scheduler.schedule_task(task)

    assert result.scheduled == 3
    assert result.capacity_exceeded
    assert len(await delivery.list_pending()) == 3


async def test_authorization_denied_propagates(clock):
    delivery = InMemoryDeliveryService(clock=clock, authorized=False)
    scheduler = ReminderScheduler(delivery, clock=clock)
    task = make_task(deadline=minutes(120), deadline_notification=remind())

    with pytest.raises(AuthorizationDenied):
        await scheduler.schedule_task(task)


async def test_high_priority_is_time_sensitive(scheduler, delivery):
    task = make_task(priority=Priority.HIGH, deadline=minutes(90), deadline_notification=once())

    await scheduler.schedule_task(task)

    assert delivery.content_for(f"deadline_once_{task.id}").interruption_level is InterruptionLevel.TIME_SENSITIVE


@pytest.mark.parametrize(
    "before, expected",
    [
        (90, "Deadline in 1h 30m"),
        (120, "Deadline in 2h"),
        (60, "Deadline in 60 min"),
        (5, "Deadline in 5 min"),
        (0, "Deadline now"),
    ],
)
def test_describe_remaining(before, expected):
    target = minutes(200)

    assert describe_remaining("Deadline", target, target - timedelta(minutes=before), False) == expected


async def test_cancel_leaves_tasks_with_longer_ids_alone(scheduler, delivery):
    task = make_task(id="abc", deadline=minutes(120), deadline_notification=remind())
    longer = make_task(id="abc1", deadline=minutes(120), deadline_notification=remind())
    longer_once = make_task(id="abc2", start_time=minutes(60), start_time_notification=once())
    for item in (task, longer, longer_once):
        await scheduler.schedule_task(item)

    assert await scheduler.cancel_task("abc") == 5

    owners = {item.id.split("_")[2] for item in await delivery.list_pending()}
    assert owners == {"abc1", "abc2"}


async def test_top_up_skips_task_completed_since_snapshot(delivery, clock):
    store = InMemoryTaskStore()
    scheduler = ReminderScheduler(delivery, clock=clock, store=store)
    snapshot = make_task(deadline=minutes(120), deadline_notification=remind())
    store.save(snapshot.model_copy(update={"is_completed": True, "completed_at": NOW}))

    result = await scheduler.top_up(snapshot, TimePointKind.DEADLINE)

    assert result.scheduled == 0
    assert await pending_ids(delivery) == []


async def test_schedule_skips_task_missing_from_store(delivery, clock):
    scheduler = ReminderScheduler(delivery, clock=clock, store=InMemoryTaskStore())
    task = make_task(deadline=minutes(120), deadline_notification=remind())

    result = await scheduler.schedule_task(task)

    assert result.scheduled == 0
    assert await pending_ids(delivery) == []


async def test_task_locks_are_dropped_once_released():
    locks = TaskLocks()

    async with locks.hold("a"):
        async with locks.hold("b"):
            assert len(locks) == 2

    assert len(locks) == 0


async def test_scheduling_leaves_no_lock_behind(scheduler):
    task = make_task(deadline=minutes(120), deadline_notification=remind())

    await scheduler.schedule_task(task)
    await scheduler.cancel_task(task.id)

    assert len(scheduler.locks) == 0
