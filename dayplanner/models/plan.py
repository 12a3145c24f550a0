"""Planned-entry models produced from model responses."""
from __future__ import annotations

from datetime import date
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from dayplanner.models.enums import TimeSensitivity, Urgency


class PlannedTask(BaseModel):
    """One line of a day's plan.

    ``start_time``/``end_time`` are presentation strings ("9:00 AM"). The entry
    may be a travel or free-time block with no backing task.
    """

    id: UUID = Field(default_factory=uuid4)
    start_time: str
    end_time: str
    title: str
    notes: Optional[str] = None
    reason: Optional[str] = None
    date: date
    is_completed: bool = False
    duration: int = Field(default=0, ge=0)
    urgency: Optional[Urgency] = None
    time_sensitivity: Optional[TimeSensitivity] = None
    location: Optional[str] = None
