from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from dayplanner.models import GroupKind, QueueEntry, QueueKind, Task, TaskGroup, TaskStatus, TimeSensitivity
from dayplanner.persistence.adapter import TASK_GROUPS_KEY, InMemoryPersistenceAdapter
from dayplanner.services.task_store import CONFLICT_REASON, DEFAULT_GROUP_NAME, Placement, TaskStore

DAY = date(2026, 10, 18)


def _starts_at(title: str, hour: int, minute: int = 0, duration: int = 60) -> Task:
    return Task(
        title=title,
        duration=duration,
        time_sensitivity=TimeSensitivity.STARTS_AT,
        exact_time=datetime(2026, 10, 18, hour, minute),
        date=DAY,
    )


def test_dated_task_lands_in_date_group_and_undated_in_default() -> None:
    store = TaskStore()
    store.add_task(Task(title="Call mom"))
    store.add_task(Task(title="Laundry", date=DAY))

    names = [(group.name, group.kind) for group in store.groups]
    assert names == [(DEFAULT_GROUP_NAME, GroupKind.TOPIC), ("October 18, 2026", GroupKind.DATE)]


def test_first_group_placement_ignores_date() -> None:
    store = TaskStore()
    topic = store.add_group("Errands")
    task = store.add_task(Task(title="Post office", date=DAY), placement=Placement.FIRST_GROUP)
    assert store.group_of(task.id) == topic.id


def test_adding_known_id_replaces_previous_copy() -> None:
    store = TaskStore()
    task = store.add_task(Task(title="Draft", date=DAY))
    store.add_task(task.model_copy(update={"title": "Final", "date": DAY + timedelta(days=1)}))

    tasks = store.all_tasks()
    assert len(tasks) == 1
    assert tasks[0].title == "Final"


def test_queue_membership_is_exclusive_and_mirrors_status() -> None:
    store = TaskStore()
    task = store.add_task(Task(title="Dentist", date=DAY))

    store.move_to_queue(task.id, QueueKind.MANUAL, reason="sick")
    store.move_to_queue(task.id, QueueKind.AUTOMATIC)

    assert store.queue(QueueKind.MANUAL) == []
    assert [entry.task_id for entry in store.queue(QueueKind.AUTOMATIC)] == [task.id]
    assert store.get_task(task.id).status == TaskStatus.QUEUED
    assert store.tasks_for_day(DAY) == []

    assert store.resolve(task.id) is True
    assert store.get_task(task.id).status == TaskStatus.ACTIVE
    assert store.resolve(task.id) is False


def test_update_unknown_task_is_a_no_op() -> None:
    store = TaskStore()
    assert store.update_task(Task(title="Ghost")) is None
    assert store.all_tasks() == []


def test_update_refreshes_queue_copy() -> None:
    store = TaskStore()
    task = store.add_task(Task(title="Dentist", date=DAY))
    store.move_to_queue(task.id, QueueKind.MANUAL)

    stored = store.get_task(task.id)
    store.update_task(stored.model_copy(update={"title": "Dentist (moved)"}))

    assert store.queue(QueueKind.MANUAL)[0].task.title == "Dentist (moved)"


def test_complete_task_leaves_queues() -> None:
    store = TaskStore()
    task = store.add_task(Task(title="Pay rent", date=DAY))
    store.move_to_queue(task.id, QueueKind.MANUAL)

    completed = store.complete_task(task.id)

    assert completed.status == TaskStatus.COMPLETED
    assert store.queued_ids() == set()


def test_delete_group_drops_its_queue_entries() -> None:
    store = TaskStore()
    group = store.add_group("Work")
    task = store.add_task(Task(title="Report"), group_id=group.id)
    store.move_to_queue(task.id, QueueKind.MANUAL)

    assert store.delete_group(group.id) is True
    assert store.get_task(task.id) is None
    assert store.queue(QueueKind.MANUAL) == []


def test_dedupe_keeps_newest_copy_across_groups() -> None:
    old = Task(title="Old", updated_at=datetime(2026, 1, 1, tzinfo=timezone.utc))
    new = old.model_copy(update={"title": "New", "updated_at": datetime(2026, 2, 1, tzinfo=timezone.utc)})
    store = TaskStore()
    first = store.add_group("A")
    second = store.add_group("B")
    store.replace_group_tasks(first.id, [old])
    store.replace_group_tasks(second.id, [new])

    removed = store.dedupe()

    assert removed == [old.id]
    assert [task.title for task in store.all_tasks()] == ["New"]


def test_dedupe_tie_prefers_manual_queue() -> None:
    stamp = datetime(2026, 3, 1, tzinfo=timezone.utc)
    task = Task(title="Tie", status=TaskStatus.QUEUED, updated_at=stamp)
    group = TaskGroup(name="Inbox", tasks=[task])
    adapter = InMemoryPersistenceAdapter()
    seed = TaskStore(adapter)
    seed._groups = [group]
    seed._queues[QueueKind.MANUAL] = [QueueEntry(task=task, kind=QueueKind.MANUAL)]
    seed._queues[QueueKind.AUTOMATIC] = [QueueEntry(task=task, kind=QueueKind.AUTOMATIC)]
    seed.save()

    store = TaskStore(adapter)
    store.load()

    assert [entry.task_id for entry in store.queue(QueueKind.MANUAL)] == [task.id]
    assert store.queue(QueueKind.AUTOMATIC) == []


def test_overlapping_time_sensitive_tasks_are_queued_automatically() -> None:
    store = TaskStore()
    first = store.add_task(_starts_at("Standup", 9, 0, duration=30))
    second = store.add_task(_starts_at("Dentist", 9, 15, duration=45))
    clear = store.add_task(_starts_at("Lunch", 12, 0))

    queued = store.detect_time_conflicts()

    assert set(queued) == {first.id, second.id}
    reasons = {entry.task_id: entry.reason for entry in store.queue(QueueKind.AUTOMATIC)}
    assert reasons == {first.id: CONFLICT_REASON, second.id: CONFLICT_REASON}
    assert store.get_task(clear.id).status == TaskStatus.ACTIVE
    assert store.detect_time_conflicts() == []


def test_transaction_rolls_back_and_publishes_nothing() -> None:
    store = TaskStore()
    events = []
    store.subscribe(events.append)
    store.add_task(Task(title="Keep"))
    events.clear()

    with pytest.raises(RuntimeError):
        with store.transaction():
            store.add_task(Task(title="Discard"))
            raise RuntimeError("boom")

    assert [task.title for task in store.all_tasks()] == ["Keep"]
    assert events == []


def test_batch_add_notifies_once() -> None:
    store = TaskStore()
    events = []
    store.subscribe(events.append)

    store.add_tasks([Task(title="One"), Task(title="Two")])

    assert events == ["transaction"]


def test_state_survives_reload() -> None:
    adapter = InMemoryPersistenceAdapter()
    store = TaskStore(adapter)
    task = store.add_task(Task(title="Persist me", date=DAY))
    store.move_to_queue(task.id, QueueKind.MANUAL, reason="later")

    reloaded = TaskStore(adapter)
    reloaded.load()

    assert reloaded.get_task(task.id).title == "Persist me"
    assert reloaded.queue(QueueKind.MANUAL)[0].reason == "later"


def test_unreadable_state_starts_empty() -> None:
    adapter = InMemoryPersistenceAdapter({"task_groups": b"not json"})
    store = TaskStore(adapter)
    store.load()
    assert store.groups == []


def test_returned_tasks_are_copies() -> None:
    store = TaskStore()
    added = store.add_task(Task(title="Original", date=DAY))
    events = []
    store.subscribe(events.append)

    added.title = "Changed after add"
    store.get_task(added.id).title = "Changed via get"
    store.all_tasks()[0].title = "Changed via listing"
    entry = store.move_to_queue(added.id, QueueKind.MANUAL)
    events.clear()
    entry.task.title = "Changed via queue entry"
    store.queue(QueueKind.MANUAL)[0].task.title = "Changed via queue"

    assert store.get_task(added.id).title == "Original"
    assert store.queue(QueueKind.MANUAL)[0].task.title == "Original"
    assert events == []


class _BrokenAdapter(InMemoryPersistenceAdapter):
    def __init__(self) -> None:
        super().__init__()
        self.broken = False

    def save(self, key: str, data: bytes) -> None:
        if self.broken:
            raise OSError("read-only volume")
        super().save(key, data)


def test_transaction_rolls_back_when_save_fails() -> None:
    adapter = _BrokenAdapter()
    store = TaskStore(adapter)
    store.add_task(Task(title="Keep"))
    persisted = adapter.load(TASK_GROUPS_KEY)
    events = []
    store.subscribe(events.append)
    adapter.broken = True

    with pytest.raises(OSError):
        store.add_tasks([Task(title="Lost one"), Task(title="Lost two")])

    assert [task.title for task in store.all_tasks()] == ["Keep"]
    assert adapter.load(TASK_GROUPS_KEY) == persisted
    assert events == []
