"""Authoritative in-process store for task groups and reschedule queues."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Tuple
from uuid import UUID

from pydantic import TypeAdapter, ValidationError

from dayplanner.models import (
    GroupKind,
    QueueEntry,
    QueueKind,
    Task,
    TaskGroup,
    TaskStatus,
)
from dayplanner.persistence.adapter import (
    AUTO_QUEUE_KEY,
    MANUAL_QUEUE_KEY,
    TASK_GROUPS_KEY,
    PersistenceAdapter,
)
from dayplanner.services.observable import ObservableStore
from dayplanner.services.time_math import long_date_string, parse_long_date

logger = logging.getLogger(__name__)

DEFAULT_GROUP_NAME = "My Tasks"
CONFLICT_REASON = "Overlaps another time-sensitive task"

_groups_adapter = TypeAdapter(List[TaskGroup])
_queue_adapter = TypeAdapter(List[QueueEntry])


class Placement(str, Enum):
    """Where ``add_task`` puts a task that names no group."""

    BY_DATE = "by_date"
    FIRST_GROUP = "first_group"


@dataclass
class StoreSnapshot:
    groups: List[TaskGroup]
    queues: Dict[QueueKind, List[QueueEntry]] = field(default_factory=dict)


class TaskStore(ObservableStore):
    """Groups of tasks plus the manual and automatic reschedule queues.

    Every mutation runs under one re-entrant lock and notifies observers before
    the lock is released, so observers never see a half-applied change. A task
    in a queue also stays in its group with ``status == queued``; the group
    copy is authoritative and the queue entry mirrors it.
    """

    def __init__(self, adapter: Optional[PersistenceAdapter] = None, *, autosave: bool = True) -> None:
        super().__init__(autosave=autosave and adapter is not None)
        self._adapter = adapter
        self._groups: List[TaskGroup] = []
        self._queues: Dict[QueueKind, List[QueueEntry]] = {
            QueueKind.MANUAL: [],
            QueueKind.AUTOMATIC: [],
        }

    # ------------------------------------------------------------------ persistence

    def load(self) -> None:
        """Replace state with whatever the adapter holds, then repair it."""
        if self._adapter is None:
            return
        with self._lock:
            self._groups = _decode(self._adapter.load(TASK_GROUPS_KEY), _groups_adapter, TASK_GROUPS_KEY)
            self._queues[QueueKind.MANUAL] = _decode(
                self._adapter.load(MANUAL_QUEUE_KEY), _queue_adapter, MANUAL_QUEUE_KEY
            )
            self._queues[QueueKind.AUTOMATIC] = _decode(
                self._adapter.load(AUTO_QUEUE_KEY), _queue_adapter, AUTO_QUEUE_KEY
            )
            self._sort_groups()
            removed = self._dedupe_locked()
            queued = self._detect_time_conflicts_locked()
            logger.info(
                "Loaded %d groups (%d duplicates removed, %d conflicts queued)",
                len(self._groups),
                len(removed),
                len(queued),
            )
            self._changed("loaded")

    def save(self) -> None:
        if self._adapter is None:
            return
        with self._lock:
            for key, data in self.to_bytes().items():
                self._adapter.save(key, data)

    def to_bytes(self) -> Dict[str, bytes]:
        with self._lock:
            return {
                TASK_GROUPS_KEY: _groups_adapter.dump_json(self._groups),
                MANUAL_QUEUE_KEY: _queue_adapter.dump_json(self._queues[QueueKind.MANUAL]),
                AUTO_QUEUE_KEY: _queue_adapter.dump_json(self._queues[QueueKind.AUTOMATIC]),
            }

    def snapshot(self) -> StoreSnapshot:
        with self._lock:
            return StoreSnapshot(
                groups=[group.model_copy(deep=True) for group in self._groups],
                queues={kind: [entry.model_copy(deep=True) for entry in entries] for kind, entries in self._queues.items()},
            )

    def _restore_state(self, snapshot: StoreSnapshot) -> None:
        self._groups = [group.model_copy(deep=True) for group in snapshot.groups]
        for kind in QueueKind:
            self._queues[kind] = [entry.model_copy(deep=True) for entry in snapshot.queues.get(kind, [])]

    # ------------------------------------------------------------------ queries

    @property
    def groups(self) -> List[TaskGroup]:
        with self._lock:
            return [group.model_copy(deep=True) for group in self._groups]

    def get_group(self, group_id: UUID) -> Optional[TaskGroup]:
        with self._lock:
            group = self._group_by_id(group_id)
            return group.model_copy(deep=True) if group else None

    def all_tasks(self) -> List[Task]:
        with self._lock:
            return [task.model_copy(deep=True) for group in self._groups for task in group.tasks]

    def get_task(self, task_id: UUID) -> Optional[Task]:
        with self._lock:
            located = self._locate(task_id)
            return located[0].tasks[located[1]].model_copy(deep=True) if located else None

    def group_of(self, task_id: UUID) -> Optional[UUID]:
        with self._lock:
            located = self._locate(task_id)
            return located[0].id if located else None

    def queue(self, kind: QueueKind) -> List[QueueEntry]:
        with self._lock:
            return [entry.model_copy(deep=True) for entry in self._queues[kind]]

    def queued_ids(self) -> Set[UUID]:
        with self._lock:
            return {entry.task_id for entries in self._queues.values() for entry in entries}

    def queue_kind_of(self, task_id: UUID) -> Optional[QueueKind]:
        with self._lock:
            for kind, entries in self._queues.items():
                if any(entry.task_id == task_id for entry in entries):
                    return kind
            return None

    def tasks_for_day(self, day: date) -> List[Task]:
        """Tasks dated ``day`` that are not waiting in a reschedule queue."""
        with self._lock:
            queued = self.queued_ids()
            return [task for task in self.all_tasks() if task.date == day and task.id not in queued]

    # ------------------------------------------------------------------ task mutations

    def add_task(
        self,
        task: Task,
        *,
        placement: Placement = Placement.BY_DATE,
        group_id: Optional[UUID] = None,
    ) -> Task:
        with self._lock:
            if self._locate(task.id) is not None:
                logger.info("Task %s already stored; replacing the previous copy", task.id)
                self._remove_everywhere(task.id)
            if group_id is not None:
                group = self._group_by_id(group_id)
                if group is None:
                    logger.info("Group %s not found; placing task %s by default rule", group_id, task.id)
                    group = self._default_group(task, placement)
            else:
                group = self._default_group(task, placement)
            stored = task.model_copy(deep=True)
            group.tasks.append(stored)
            self._changed("task_added")
            return stored.model_copy(deep=True)

    def add_tasks(self, tasks: Iterable[Task], *, group_id: Optional[UUID] = None) -> List[Task]:
        with self.transaction():
            return [self.add_task(task, group_id=group_id) for task in tasks]

    def update_task(self, task: Task) -> Optional[Task]:
        """Replace the stored copy of ``task``; unknown ids are ignored."""
        with self._lock:
            located = self._locate(task.id)
            if located is None:
                logger.info("Ignoring update for unknown task %s", task.id)
                return None
            group, index = located
            updated = task.touched()
            group.tasks[index] = updated
            self._mirror_into_queues(updated)
            self._changed("task_updated")
            return updated.model_copy(deep=True)

    def delete_task(self, task_id: UUID) -> bool:
        with self._lock:
            removed = self._remove_everywhere(task_id)
            if removed is None:
                return False
            self._changed("task_deleted")
            return True

    def take_task(self, task_id: UUID) -> Tuple[Optional[Task], Optional[UUID]]:
        """Remove a task from its group and any queue; return it with its group id."""
        with self._lock:
            located = self._locate(task_id)
            group_id = located[0].id if located else None
            removed = self._remove_everywhere(task_id)
            if removed is not None:
                self._changed("task_removed")
            return removed, group_id

    def complete_task(self, task_id: UUID) -> Optional[Task]:
        with self._lock:
            located = self._locate(task_id)
            if located is None:
                return None
            group, index = located
            self._drop_from_queues(task_id)
            completed = group.tasks[index].touched(status=TaskStatus.COMPLETED)
            group.tasks[index] = completed
            self._changed("task_completed")
            return completed.model_copy(deep=True)

    # ------------------------------------------------------------------ queues

    def move_to_queue(self, task_id: UUID, kind: QueueKind, reason: Optional[str] = None) -> Optional[QueueEntry]:
        """Flag a task for rescheduling; it leaves any other queue first."""
        with self._lock:
            located = self._locate(task_id)
            if located is None:
                logger.info("Cannot queue unknown task %s", task_id)
                return None
            group, index = located
            self._drop_from_queues(task_id)
            queued = group.tasks[index].touched(status=TaskStatus.QUEUED)
            group.tasks[index] = queued
            entry = QueueEntry(task=queued, kind=kind, reason=reason)
            self._queues[kind].append(entry)
            self._changed("task_queued")
            return entry.model_copy(deep=True)

    def resolve(self, task_id: UUID) -> bool:
        """Remove a task from whichever queue holds it and make it active again."""
        with self._lock:
            if not self._drop_from_queues(task_id):
                return False
            located = self._locate(task_id)
            if located is not None:
                group, index = located
                if group.tasks[index].status == TaskStatus.QUEUED:
                    group.tasks[index] = group.tasks[index].touched(status=TaskStatus.ACTIVE)
            self._changed("task_resolved")
            return True

    def clear_queue(self, kind: QueueKind) -> int:
        with self.transaction():
            ids = [entry.task_id for entry in self._queues[kind]]
            for task_id in ids:
                self.resolve(task_id)
            return len(ids)

    # ------------------------------------------------------------------ groups

    def add_group(self, name: str, kind: GroupKind = GroupKind.TOPIC) -> TaskGroup:
        with self._lock:
            group = TaskGroup(name=name, kind=kind)
            self._groups.append(group)
            self._sort_groups()
            self._changed("group_added")
            return group.model_copy(deep=True)

    def rename_group(self, group_id: UUID, name: str) -> Optional[TaskGroup]:
        with self._lock:
            group = self._group_by_id(group_id)
            if group is None:
                return None
            group.name = name
            self._changed("group_renamed")
            return group.model_copy(deep=True)

    def delete_group(self, group_id: UUID) -> bool:
        """Delete a group together with its tasks and their queue entries."""
        with self._lock:
            group = self._group_by_id(group_id)
            if group is None:
                return False
            for task in group.tasks:
                self._drop_from_queues(task.id)
            self._groups.remove(group)
            self._changed("group_deleted")
            return True

    def replace_group_tasks(self, group_id: UUID, tasks: List[Task]) -> bool:
        with self._lock:
            group = self._group_by_id(group_id)
            if group is None:
                return False
            group.tasks = list(tasks)
            self._changed("group_updated")
            return True

    # ------------------------------------------------------------------ integrity

    def dedupe(self) -> List[UUID]:
        with self._lock:
            removed = self._dedupe_locked()
            if removed:
                self._changed("deduplicated")
            return removed

    def detect_time_conflicts(self) -> List[UUID]:
        with self._lock:
            queued = self._detect_time_conflicts_locked()
            if queued:
                self._changed("conflicts_detected")
            return queued

    def _dedupe_locked(self) -> List[UUID]:
        """Collapse duplicate ids across groups and across both queues.

        The copy with the newest ``updated_at`` wins; on a tie the first copy
        seen wins, with groups scanned in order and the manual queue before
        the automatic one.
        """
        removed: List[UUID] = []

        group_slots = [(group, task) for group in self._groups for task in group.tasks]
        keep_tasks = _winners(group_slots, key=lambda slot: slot[1])
        for group in self._groups:
            kept: List[Task] = []
            for task in group.tasks:
                if keep_tasks[task.id] == (group.id, id(task)):
                    kept.append(task)
                else:
                    removed.append(task.id)
                    logger.info("Dropped duplicate task %s from group %s", task.id, group.name)
            group.tasks = kept

        queue_slots = [(kind, entry) for kind in (QueueKind.MANUAL, QueueKind.AUTOMATIC) for entry in self._queues[kind]]
        keep_entries = _winners(queue_slots, key=lambda slot: slot[1].task)
        for kind in (QueueKind.MANUAL, QueueKind.AUTOMATIC):
            kept_entries: List[QueueEntry] = []
            for entry in self._queues[kind]:
                if keep_entries[entry.task_id] == (kind, id(entry)):
                    kept_entries.append(entry)
                else:
                    removed.append(entry.task_id)
                    logger.info(
                        "Dropped duplicate %s queue entry for task %s (kept %s copy)",
                        kind.value,
                        entry.task_id,
                        keep_entries[entry.task_id][0].value,
                    )
            self._queues[kind] = kept_entries

        self._sync_statuses()
        return removed

    def _sync_statuses(self) -> None:
        queued = self.queued_ids()
        for group in self._groups:
            for index, task in enumerate(group.tasks):
                if task.id in queued and task.status == TaskStatus.ACTIVE:
                    group.tasks[index] = task.model_copy(update={"status": TaskStatus.QUEUED})
                elif task.id not in queued and task.status == TaskStatus.QUEUED:
                    logger.info("Task %s marked queued but in no queue; reactivating", task.id)
                    group.tasks[index] = task.model_copy(update={"status": TaskStatus.ACTIVE})

    def _detect_time_conflicts_locked(self) -> List[UUID]:
        candidates = [
            task
            for task in self.all_tasks()
            if task.exact_time is not None
            and task.date is not None
            and task.is_time_sensitive
            and task.status != TaskStatus.COMPLETED
        ]
        conflicting: Set[UUID] = set()
        for index, first in enumerate(candidates):
            for second in candidates[index + 1 :]:
                if first.date != second.date:
                    continue
                if _overlaps(first, second):
                    conflicting.update((first.id, second.id))

        already = self.queued_ids()
        queued: List[UUID] = []
        for task in candidates:
            if task.id in conflicting and task.id not in already:
                group, position = self._locate(task.id)
                flagged = group.tasks[position].touched(status=TaskStatus.QUEUED)
                group.tasks[position] = flagged
                self._queues[QueueKind.AUTOMATIC].append(
                    QueueEntry(task=flagged, kind=QueueKind.AUTOMATIC, reason=CONFLICT_REASON)
                )
                queued.append(task.id)
        if queued:
            logger.info("Queued %d conflicting tasks: %s", len(queued), ", ".join(map(str, queued)))
        return queued

    # ------------------------------------------------------------------ helpers

    def _locate(self, task_id: UUID) -> Optional[Tuple[TaskGroup, int]]:
        for group in self._groups:
            index = group.index_of(task_id)
            if index is not None:
                return group, index
        return None

    def _group_by_id(self, group_id: UUID) -> Optional[TaskGroup]:
        for group in self._groups:
            if group.id == group_id:
                return group
        return None

    def _default_group(self, task: Task, placement: Placement) -> TaskGroup:
        if placement == Placement.BY_DATE and task.date is not None:
            name = long_date_string(task.date)
            for group in self._groups:
                if group.kind == GroupKind.DATE and group.name == name:
                    return group
            group = TaskGroup(name=name, kind=GroupKind.DATE)
            self._groups.append(group)
            self._sort_groups()
            return group
        if not self._groups:
            group = TaskGroup(name=DEFAULT_GROUP_NAME)
            self._groups.append(group)
            return group
        return self._groups[0]

    def _sort_groups(self) -> None:
        topics = [group for group in self._groups if group.kind == GroupKind.TOPIC]
        dated = [group for group in self._groups if group.kind == GroupKind.DATE]
        dated.sort(key=lambda group: parse_long_date(group.name) or date.max)
        self._groups = topics + dated

    def _drop_from_queues(self, task_id: UUID) -> bool:
        dropped = False
        for kind, entries in self._queues.items():
            kept = [entry for entry in entries if entry.task_id != task_id]
            if len(kept) != len(entries):
                self._queues[kind] = kept
                dropped = True
        return dropped

    def _remove_everywhere(self, task_id: UUID) -> Optional[Task]:
        self._drop_from_queues(task_id)
        located = self._locate(task_id)
        if located is None:
            return None
        group, index = located
        return group.tasks.pop(index)

    def _mirror_into_queues(self, task: Task) -> None:
        for entries in self._queues.values():
            for index, entry in enumerate(entries):
                if entry.task_id == task.id:
                    entries[index] = entry.model_copy(update={"task": task})


def _decode(data: Optional[bytes], adapter: TypeAdapter, key: str) -> list:
    if not data:
        return []
    try:
        return adapter.validate_json(data)
    except ValidationError as exc:
        logger.warning("Discarding unreadable %s state: %s", key, exc)
        return []


def _winners(slots, key) -> Dict[UUID, Tuple[object, int]]:
    """Pick, per task id, the (container, object id) of the copy to keep."""
    best: Dict[UUID, Tuple[object, int, datetime]] = {}
    for container, item in slots:
        task = key((container, item))
        owner = container.id if isinstance(container, TaskGroup) else container
        current = best.get(task.id)
        if current is None or task.updated_at > current[2]:
            best[task.id] = (owner, id(item), task.updated_at)
    return {task_id: (owner, ident) for task_id, (owner, ident, _) in best.items()}


def _overlaps(first: Task, second: Task) -> bool:
    first_end = first.exact_time + timedelta(minutes=first.duration)
    second_end = second.exact_time + timedelta(minutes=second.duration)
    return max(first.exact_time, second.exact_time) < min(first_end, second_end)
