"""Expansion of recurring templates into dated task instances."""
from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Iterator, List, Optional, Protocol

from dateutil.relativedelta import relativedelta

from dayplanner.core.exceptions import UnsupportedRecurrenceError
from dayplanner.models import (
    HOME_LOCATION,
    RecurrenceInterval,
    RecurringTaskTemplate,
    Task,
    TimeSensitivity,
)
from dayplanner.services.time_math import reanchor

logger = logging.getLogger(__name__)

DEFAULT_HORIZON = 60

_STEPS = {
    RecurrenceInterval.DAILY: relativedelta(days=1),
    RecurrenceInterval.WEEKLY: relativedelta(weeks=1),
    RecurrenceInterval.MONTHLY: relativedelta(months=1),
    RecurrenceInterval.YEARLY: relativedelta(years=1),
}


class TaskSink(Protocol):
    def add_task(self, task: Task) -> Task:
        ...


def occurrence_dates(
    template: RecurringTaskTemplate,
    start: date,
    horizon: int = DEFAULT_HORIZON,
) -> Iterator[date]:
    """Yield ``horizon`` occurrence dates for ``template`` beginning at ``start``.

    Each date is computed from ``start`` rather than from the previous
    occurrence so month-end anchors do not drift (Jan 31 -> Feb 28 -> Mar 31).
    """
    interval = template.interval
    step = _STEPS.get(interval)
    if step is None:
        raise UnsupportedRecurrenceError(
            f"Unsupported recurrence interval: {interval!r}",
            details={"template_id": str(template.id)},
        )

    if interval == RecurrenceInterval.WEEKLY and template.selected_weekdays:
        yield from _selected_weekday_dates(start, template.selected_weekdays, horizon)
        return

    for index in range(horizon):
        yield start + step * index


def _selected_weekday_dates(start: date, weekdays: List[int], horizon: int) -> Iterator[date]:
    produced = 0
    current = start
    while produced < horizon:
        if current.weekday() in weekdays:
            yield current
            produced += 1
        current += timedelta(days=1)


def instantiate(template: RecurringTaskTemplate, day: date) -> Task:
    """Build the concrete task for one occurrence of ``template``."""
    location = (template.location or "").strip()
    kind = template.time_sensitivity

    exact_time = None
    range_start = None
    range_end = None
    if kind in (TimeSensitivity.DUE_BY, TimeSensitivity.STARTS_AT):
        exact_time = reanchor(template.exact_time, day)
    elif kind == TimeSensitivity.BUSY_FROM_TO:
        range_start = reanchor(template.time_range_start, day)
        range_end = reanchor(template.time_range_end, day)
        if range_start and range_end and range_end < range_start:
            # overnight blocks end on the following day
            range_end += timedelta(days=1)

    return Task(
        title=template.title,
        duration=template.duration,
        urgency=template.urgency,
        time_sensitivity=kind,
        exact_time=exact_time,
        time_range_start=range_start,
        time_range_end=range_end,
        is_location_sensitive=bool(location) and location != HOME_LOCATION,
        location=template.location,
        category=template.category,
        date=day,
        parent_recurring_id=template.id,
    )


class RecurrenceExpander:
    """Generate a bounded series of tasks from a template into a sink."""

    def __init__(self, horizon: int = DEFAULT_HORIZON) -> None:
        self.horizon = horizon

    def expand(
        self,
        template: RecurringTaskTemplate,
        sink: TaskSink,
        *,
        start: Optional[date] = None,
        horizon: Optional[int] = None,
    ) -> List[Task]:
        """Append one task per occurrence to ``sink`` and return them.

        Instances are committed one at a time: if the sink rejects instance k,
        instances 1..k-1 remain in the sink and the error propagates.
        """
        first_day = start or date.today()
        count = self.horizon if horizon is None else horizon
        created: List[Task] = []
        for day in occurrence_dates(template, first_day, count):
            created.append(sink.add_task(instantiate(template, day)))
        logger.info(
            "Expanded recurring template %s into %d tasks starting %s",
            template.id,
            len(created),
            first_day.isoformat(),
        )
        return created
