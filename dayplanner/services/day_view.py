"""Read model for a single day."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional

from dayplanner.models import PlannedTask, Task, TimeSensitivity
from dayplanner.services.daily_plan_store import DailyPlanStore
from dayplanner.services.task_store import TaskStore


@dataclass
class DayView:
    day: date
    scheduled: List[Task] = field(default_factory=list)
    unscheduled: List[Task] = field(default_factory=list)
    plan_entries: List[PlannedTask] = field(default_factory=list)


def anchor_time(task: Task) -> Optional[datetime]:
    if task.time_sensitivity == TimeSensitivity.BUSY_FROM_TO:
        return task.time_range_start
    if task.time_sensitivity != TimeSensitivity.NONE:
        return task.exact_time
    return None


def build_day_view(task_store: TaskStore, plan_store: DailyPlanStore, day: date) -> DayView:
    """Tasks due on ``day`` (queued ones excluded) plus the day's plan-only entries."""
    view = DayView(day=day, plan_entries=plan_store.get_plan(day))
    for task in task_store.tasks_for_day(day):
        if anchor_time(task) is not None:
            view.scheduled.append(task)
        else:
            view.unscheduled.append(task)
    view.scheduled.sort(key=anchor_time)
    return view
