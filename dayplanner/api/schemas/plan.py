"""Schemas for plan generation, acceptance and day plans."""
from __future__ import annotations

from datetime import date, datetime
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from dayplanner.models import TimeSensitivity, Urgency


class PlannedEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    start_time: str
    end_time: str
    title: str
    notes: Optional[str]
    reason: Optional[str]
    date: date
    is_completed: bool
    duration: int
    urgency: Optional[Urgency]
    time_sensitivity: Optional[TimeSensitivity]
    location: Optional[str]


class PlannedEntryInput(BaseModel):
    """A proposed entry as edited by the user before accepting."""

    id: UUID
    start_time: str
    end_time: str
    title: str = Field(..., min_length=1)
    notes: Optional[str] = None
    reason: Optional[str] = None
    duration: Optional[int] = Field(default=None, ge=0)
    urgency: Optional[Urgency] = None
    time_sensitivity: Optional[TimeSensitivity] = None
    location: Optional[str] = None


class GeneratePlanRequest(BaseModel):
    day: date
    group_id: Optional[UUID] = None
    transport_mode: Optional[str] = Field(default=None, description="walk, drive or public transit")
    notes: Optional[str] = None


class RegeneratePlanRequest(BaseModel):
    notes: Optional[str] = None


class AcceptPlanRequest(BaseModel):
    entries: Optional[List[PlannedEntryInput]] = None


class OptimizeQueueRequest(BaseModel):
    task_ids: Optional[List[UUID]] = None
    deadlines: Dict[UUID, datetime] = Field(default_factory=dict)
    day: Optional[date] = None
    notes: Optional[str] = None


class PlanProposalResponse(BaseModel):
    request_id: UUID
    day: date
    kind: str
    entries: List[PlannedEntryResponse]
    notes: List[str]


class AcceptPlanResponse(BaseModel):
    day: date
    updated_task_ids: List[UUID]
    plan_only: List[PlannedEntryResponse]


class DayPlanResponse(BaseModel):
    day: date
    entries: List[PlannedEntryResponse]
