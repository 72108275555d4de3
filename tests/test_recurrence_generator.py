from datetime import timedelta

from taskminder.models.repeat import DailyPattern, WeeklyPattern
from taskminder.models.task import TaskRole
from taskminder.services.recurrence.generator import build_instance

from conftest import NOW, make_task, remind


def hours(n):
    return NOW + timedelta(hours=n)


def daily_template(**kwargs):
    kwargs.setdefault("deadline", hours(1))
    kwargs.setdefault("deadline_notification", remind(60, 15))
    return make_task("Water plants", is_repeating=True, repeat_pattern=DailyPattern(), **kwargs)


async def test_initialize_creates_three_instances(engine, delivery):
    template = await engine.tasks.create_task(daily_template())

    instances = engine.generator.pending_instances(template.id)

    assert [task.deadline for task in instances] == [hours(25), hours(49), hours(73)]
    assert all(task.role is TaskRole.INSTANCE for task in instances)
    assert all(task.parent_task_id == template.id and not task.is_repeating for task in instances)
    assert all(task.deadline_notification == template.deadline_notification for task in instances)

    owners = {item.id.split("_")[2] for item in await delivery.list_pending()}
    assert owners == {task.id for task in instances}


async def test_initialize_stops_at_repeat_end_date(engine):
    template = await engine.tasks.create_task(daily_template(repeat_end_date=hours(50)))

    assert [task.deadline for task in engine.generator.pending_instances(template.id)] == [hours(25), hours(49)]


async def test_completing_with_two_left_generates_nothing(engine):
    template = await engine.tasks.create_task(daily_template())
    first = engine.generator.pending_instances(template.id)[0]

    await engine.tasks.complete_task(first.id)

    assert len(engine.generator.pending_instances(template.id)) == 2


async def test_completing_with_one_left_generates_one(engine):
    template = await engine.tasks.create_task(daily_template())
    first, second, _ = engine.generator.pending_instances(template.id)

    await engine.tasks.complete_task(first.id)
    await engine.tasks.complete_task(second.id)

    remaining = engine.generator.pending_instances(template.id)
    assert [task.deadline for task in remaining] == [hours(73), hours(97)]


async def test_editing_template_regenerates_instances(engine, delivery):
    template = await engine.tasks.create_task(daily_template())

    template.title = "Water all plants"
    await engine.tasks.update_task(template)
    after_first = {task.deadline for task in engine.generator.pending_instances(template.id)}
    await engine.tasks.update_task(template)

    instances = engine.generator.pending_instances(template.id)
    assert {task.deadline for task in instances} == after_first == {hours(25), hours(49), hours(73)}
    assert len(instances) == 3
    assert {task.title for task in instances} == {"Water all plants"}
    owners = {item.id.split("_")[2] for item in await delivery.list_pending()}
    assert owners == {task.id for task in instances}


async def test_editing_keeps_completed_instances(engine):
    template = await engine.tasks.create_task(daily_template())
    first = engine.generator.pending_instances(template.id)[0]
    await engine.tasks.complete_task(first.id)

    template.repeat_pattern = WeeklyPattern()
    await engine.tasks.update_task(template)

    assert engine.tasks.get_task(first.id).is_completed
    assert [task.deadline for task in engine.generator.pending_instances(template.id)] == [
        hours(1 + 24 * 7),
        hours(1 + 24 * 14),
        hours(1 + 24 * 21),
    ]


async def test_turning_repeat_off_removes_instances(engine, delivery):
    template = await engine.tasks.create_task(daily_template())

    template.is_repeating = False
    template.repeat_pattern = None
    updated = await engine.tasks.update_task(template)

    assert updated.role is TaskRole.SINGLE
    assert engine.generator.pending_instances(template.id) == []
    owners = {item.id.split("_")[2] for item in await delivery.list_pending()}
    assert owners == {template.id}


async def test_orphaned_instance_completion_generates_nothing(engine, store):
    template = await engine.tasks.create_task(daily_template())
    instances = engine.generator.pending_instances(template.id)
    store.delete(template)

    for task in instances:
        await engine.tasks.complete_task(task.id)

    assert engine.generator.pending_instances(template.id) == []


def test_build_instance_keeps_start_to_deadline_distance():
    template = daily_template(start_time=hours(-1), deadline=hours(1))

    instance = build_instance(template, hours(25))

    assert instance.deadline == hours(25)
    assert instance.start_time == hours(23)


def test_build_instance_anchored_on_start_time():
    template = make_task("Standup", start_time=hours(2), is_repeating=True, repeat_pattern=DailyPattern())

    instance = build_instance(template, hours(26))

    assert instance.start_time == hours(26)
    assert instance.deadline is None


def test_build_instance_never_chains_through_instances():
    instance = make_task("Child", deadline=hours(1), parent_task_id="root-template")

    assert build_instance(instance, hours(25)).parent_task_id == "root-template"
