from __future__ import annotations

from datetime import date, datetime, time

import pytest

from dayplanner.core.exceptions import UnsupportedRecurrenceError
from dayplanner.models import RecurrenceInterval, RecurringTaskTemplate, TimeSensitivity
from dayplanner.services.recurrence import RecurrenceExpander, instantiate, occurrence_dates
from dayplanner.services.task_store import TaskStore


def _template(**overrides) -> RecurringTaskTemplate:
    fields = {"title": "Gym", "duration": 60, "interval": RecurrenceInterval.DAILY}
    fields.update(overrides)
    return RecurringTaskTemplate(**fields)


def test_monthly_dates_do_not_drift_after_short_months() -> None:
    template = _template(interval=RecurrenceInterval.MONTHLY)
    dates = list(occurrence_dates(template, date(2026, 1, 31), horizon=3))
    assert dates == [date(2026, 1, 31), date(2026, 2, 28), date(2026, 3, 31)]


def test_weekly_with_selected_weekdays_walks_matching_days() -> None:
    template = _template(interval=RecurrenceInterval.WEEKLY, selected_weekdays=[0, 2])
    # 2026-10-18 is a Sunday
    dates = list(occurrence_dates(template, date(2026, 10, 18), horizon=4))
    assert dates == [date(2026, 10, 19), date(2026, 10, 21), date(2026, 10, 26), date(2026, 10, 28)]


def test_unknown_interval_is_rejected() -> None:
    template = _template().model_copy(update={"interval": "fortnightly"})
    with pytest.raises(UnsupportedRecurrenceError):
        list(occurrence_dates(template, date(2026, 10, 18), horizon=2))


def test_instantiate_anchors_times_and_rolls_overnight_ranges() -> None:
    template = _template(
        time_sensitivity=TimeSensitivity.BUSY_FROM_TO,
        time_range_start=time(22, 0),
        time_range_end=time(6, 0),
        location="Night Shift Clinic",
    )
    task = instantiate(template, date(2026, 10, 18))
    assert task.time_range_start == datetime(2026, 10, 18, 22, 0)
    assert task.time_range_end == datetime(2026, 10, 19, 6, 0)
    assert task.is_location_sensitive is True
    assert task.parent_recurring_id == template.id


def test_home_location_is_not_location_sensitive() -> None:
    task = instantiate(_template(location="Home"), date(2026, 10, 18))
    assert task.is_location_sensitive is False


def test_expand_appends_instances_to_store() -> None:
    store = TaskStore()
    template = _template(time_sensitivity=TimeSensitivity.STARTS_AT, exact_time=time(7, 0))
    created = RecurrenceExpander(horizon=3).expand(template, store, start=date(2026, 10, 18))

    assert [task.date for task in created] == [date(2026, 10, 18), date(2026, 10, 19), date(2026, 10, 20)]
    assert [task.exact_time.day for task in created] == [18, 19, 20]
    assert {task.id for task in store.all_tasks()} == {task.id for task in created}
    assert [group.name for group in store.groups] == ["October 18, 2026", "October 19, 2026", "October 20, 2026"]
