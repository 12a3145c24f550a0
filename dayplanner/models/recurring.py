"""Recurring task template model."""
from __future__ import annotations

from datetime import time
from typing import List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator

from dayplanner.models.enums import RecurrenceInterval, TimeSensitivity, Urgency


class RecurringTaskTemplate(BaseModel):
    """A pattern that spawns dated tasks on a fixed interval.

    Times are time-of-day only; the expander anchors them to each occurrence.
    ``selected_weekdays`` (Monday=0) narrows weekly templates to specific days.
    """

    id: UUID = Field(default_factory=uuid4)
    title: str
    duration: int = Field(default=0, ge=0)
    urgency: Urgency = Urgency.MEDIUM
    time_sensitivity: TimeSensitivity = TimeSensitivity.NONE
    exact_time: Optional[time] = None
    time_range_start: Optional[time] = None
    time_range_end: Optional[time] = None
    location: Optional[str] = None
    category: str = "Personal"
    interval: RecurrenceInterval
    selected_weekdays: Optional[List[int]] = None

    @field_validator("selected_weekdays")
    @classmethod
    def _check_weekdays(cls, value: Optional[List[int]]) -> Optional[List[int]]:
        if value is None:
            return None
        if any(day < 0 or day > 6 for day in value):
            raise ValueError("selected_weekdays must be between 0 (Monday) and 6 (Sunday)")
        return sorted(set(value))
