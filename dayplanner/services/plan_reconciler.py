"""Merge accepted plans into the task store and keep the collections consistent."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, List, Sequence
from uuid import UUID

from dayplanner.models import GroupKind, PlannedTask, Task, TaskStatus, TimeSensitivity
from dayplanner.services.daily_plan_store import DailyPlanStore
from dayplanner.services.observable import joint_transaction
from dayplanner.services.task_store import Placement, TaskStore
from dayplanner.services.time_math import combine, parse_time_string

logger = logging.getLogger(__name__)


@dataclass
class AcceptResult:
    updated_tasks: List[Task] = field(default_factory=list)
    plan_only: List[PlannedTask] = field(default_factory=list)


@dataclass
class ReconcileReport:
    duplicates_removed: int = 0
    stale_plan_entries_removed: int = 0
    conflicts_queued: int = 0


def merge_entry(day: date, entry: PlannedTask, original: Task) -> Task:
    """Task carrying the plan's placement and the original's identity.

    Title, urgency and location fall back to the original when the entry
    leaves them out. Unparseable entry times keep the original timing.
    """
    start = parse_time_string(entry.start_time)
    end = parse_time_string(entry.end_time)
    changes = {
        "title": entry.title or original.title,
        "urgency": entry.urgency or original.urgency,
        "location": entry.location or original.location,
        "date": day,
        "duration": entry.duration or original.duration,
        "status": TaskStatus.COMPLETED if original.is_completed else TaskStatus.ACTIVE,
    }

    if start is not None:
        start_at = combine(day, start)
        end_at = combine(day, end) if end is not None else start_at + timedelta(minutes=changes["duration"])
        if end_at < start_at:
            end_at += timedelta(days=1)
        kind = original.time_sensitivity
        if kind == TimeSensitivity.BUSY_FROM_TO:
            changes.update(time_range_start=start_at, time_range_end=end_at, exact_time=None)
        elif kind == TimeSensitivity.DUE_BY:
            changes.update(exact_time=end_at, time_range_start=None, time_range_end=None)
        else:
            # an unconstrained task becomes pinned to its planned slot
            changes.update(
                time_sensitivity=TimeSensitivity.STARTS_AT,
                exact_time=start_at,
                time_range_start=None,
                time_range_end=None,
            )

    merged = original.model_copy(update=changes)
    if _same_content(merged, original):
        return original
    return merged.touched()


def _same_content(first: Task, second: Task) -> bool:
    return first.model_dump(exclude={"updated_at"}) == second.model_dump(exclude={"updated_at"})


class PlanReconciler:
    """Moves proposed plans into committed state.

    Accepting is keyed by id: a matched task is removed from its group and
    any queue, then re-inserted with the plan's times, so repeating the same
    accept leaves the stores unchanged.
    """

    def __init__(self, task_store: TaskStore, plan_store: DailyPlanStore) -> None:
        self.task_store = task_store
        self.plan_store = plan_store

    def accept(
        self,
        day: date,
        entries: Sequence[PlannedTask],
        original_tasks: Iterable[Task] = (),
        *,
        replace_day: bool = True,
    ) -> AcceptResult:
        """Commit ``entries`` for ``day``.

        With ``replace_day`` the day's plan-only entries are replaced by the
        new ones; otherwise they are merged by id. Either all entries apply or
        both stores are left as they were.
        """
        originals = {task.id: task for task in original_tasks}
        result = AcceptResult()
        with joint_transaction(self.task_store, self.plan_store):
            for entry in entries:
                current = self.task_store.get_task(entry.id)
                original = current or originals.get(entry.id)
                if original is None:
                    result.plan_only.append(entry.model_copy(update={"date": day}))
                    continue
                result.updated_tasks.append(self._apply(day, entry, original))

            if replace_day:
                self.plan_store.save_plan(day, result.plan_only)
            elif result.plan_only:
                self.plan_store.upsert_entries(day, result.plan_only)
            if result.updated_tasks:
                self.plan_store.remove_everywhere(task.id for task in result.updated_tasks)

        logger.info(
            "Accepted plan for %s: %d tasks updated, %d plan-only entries",
            day.isoformat(),
            len(result.updated_tasks),
            len(result.plan_only),
        )
        return result

    def _apply(self, day: date, entry: PlannedTask, original: Task) -> Task:
        merged = merge_entry(day, entry, original)
        _, group_id = self.task_store.take_task(entry.id)
        group = self.task_store.get_group(group_id) if group_id else None
        if group is not None and group.kind == GroupKind.DATE:
            # date buckets follow the task to its planned day
            group_id = None
        return self.task_store.add_task(merged, group_id=group_id, placement=Placement.BY_DATE)

    def dedupe_queues(self) -> List[UUID]:
        return self.task_store.dedupe()

    def scan_conflicts(self) -> List[UUID]:
        return self.task_store.detect_time_conflicts()

    def reconcile(self) -> ReconcileReport:
        """Repair duplicates, drop plan entries shadowed by tasks, queue overlaps."""
        report = ReconcileReport()
        with joint_transaction(self.task_store, self.plan_store):
            report.duplicates_removed = len(self.task_store.dedupe())
            task_ids = {task.id for task in self.task_store.all_tasks()}
            report.stale_plan_entries_removed = self.plan_store.remove_everywhere(task_ids)
            report.conflicts_queued = len(self.task_store.detect_time_conflicts())
        if report.duplicates_removed or report.stale_plan_entries_removed or report.conflicts_queued:
            logger.info(
                "Reconciled stores: %d duplicates, %d stale plan entries, %d conflicts",
                report.duplicates_removed,
                report.stale_plan_entries_removed,
                report.conflicts_queued,
            )
        return report
