"""Schemas for task, group and day endpoints."""
from __future__ import annotations

from datetime import date, date as date_type, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from dayplanner.models import GroupKind, QueueKind, TaskStatus, TimeSensitivity, Urgency
from dayplanner.api.schemas.plan import PlannedEntryResponse


class TaskCreateRequest(BaseModel):
    title: str = Field(..., min_length=1)
    duration: Optional[int] = Field(default=None, ge=0, description="Minutes; busy ranges default to their length.")
    urgency: Urgency = Urgency.MEDIUM
    time_sensitivity: TimeSensitivity = TimeSensitivity.NONE
    exact_time: Optional[datetime] = None
    time_range_start: Optional[datetime] = None
    time_range_end: Optional[datetime] = None
    location: Optional[str] = None
    category: str = "Personal"
    date: Optional[date_type] = None
    group_id: Optional[UUID] = None


class TaskUpdateRequest(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    duration: Optional[int] = Field(default=None, ge=0)
    urgency: Optional[Urgency] = None
    time_sensitivity: Optional[TimeSensitivity] = None
    exact_time: Optional[datetime] = None
    time_range_start: Optional[datetime] = None
    time_range_end: Optional[datetime] = None
    location: Optional[str] = None
    category: Optional[str] = None
    date: Optional[date_type] = None


class TaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    duration: int
    urgency: Urgency
    time_sensitivity: TimeSensitivity
    exact_time: Optional[datetime]
    time_range_start: Optional[datetime]
    time_range_end: Optional[datetime]
    is_location_sensitive: bool
    location: Optional[str]
    category: str
    date: Optional[date_type]
    parent_recurring_id: Optional[UUID]
    status: TaskStatus
    updated_at: datetime


class RescheduleRequest(BaseModel):
    kind: QueueKind = QueueKind.MANUAL
    reason: Optional[str] = None


class QueueEntryResponse(BaseModel):
    task: TaskResponse
    kind: QueueKind
    reason: Optional[str]
    queued_at: datetime


class ExpandTextRequest(BaseModel):
    text: str = Field(..., min_length=1)
    date: Optional[date_type] = None


class ExpandTextResponse(BaseModel):
    tasks: List[TaskResponse]
    request_id: Optional[str] = None


class DayViewResponse(BaseModel):
    day: date
    scheduled: List[TaskResponse]
    unscheduled: List[TaskResponse]
    plan_entries: List[PlannedEntryResponse]


class GroupCreateRequest(BaseModel):
    name: str = Field(..., min_length=1)


class GroupRenameRequest(BaseModel):
    name: str = Field(..., min_length=1)


class GroupResponse(BaseModel):
    id: UUID
    name: str
    kind: GroupKind
    tasks: List[TaskResponse]
