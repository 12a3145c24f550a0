"""Schemas for recurring templates."""
from __future__ import annotations

from datetime import date, time
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from dayplanner.models import RecurrenceInterval, TimeSensitivity, Urgency


class RecurringTemplateRequest(BaseModel):
    title: str = Field(..., min_length=1)
    duration: int = Field(default=30, ge=0)
    urgency: Urgency = Urgency.MEDIUM
    time_sensitivity: TimeSensitivity = TimeSensitivity.NONE
    exact_time: Optional[time] = None
    time_range_start: Optional[time] = None
    time_range_end: Optional[time] = None
    location: Optional[str] = None
    category: str = "Personal"
    interval: RecurrenceInterval
    selected_weekdays: Optional[List[int]] = None


class RecurringTemplateResponse(RecurringTemplateRequest):
    id: UUID


class ExpandTemplateRequest(BaseModel):
    start: Optional[date] = None


class ExpandTemplateResponse(BaseModel):
    template_id: UUID
    created: int
    first_date: Optional[date]
    last_date: Optional[date]
