"""Task and task group domain models."""
from __future__ import annotations

from datetime import date as date_type, datetime, timezone
from typing import List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, model_validator

from dayplanner.models.enums import (
    SENTINEL_LOCATIONS,
    GroupKind,
    QueueKind,
    TaskStatus,
    TimeSensitivity,
    Urgency,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Task(BaseModel):
    """A unit of work with optional timing and location constraints.

    Instants (``exact_time``, ``time_range_start``, ``time_range_end``) are naive
    local wall-clock datetimes; ``date`` is the calendar day the task belongs to.
    """

    id: UUID = Field(default_factory=uuid4)
    title: str
    duration: int = Field(default=0, ge=0, description="Minutes.")
    urgency: Urgency = Urgency.MEDIUM
    time_sensitivity: TimeSensitivity = TimeSensitivity.NONE
    exact_time: Optional[datetime] = None
    time_range_start: Optional[datetime] = None
    time_range_end: Optional[datetime] = None
    is_location_sensitive: bool = False
    location: Optional[str] = None
    category: str = "Personal"
    date: Optional[date_type] = None
    parent_recurring_id: Optional[UUID] = None
    status: TaskStatus = TaskStatus.ACTIVE
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _check_time_range(self) -> "Task":
        if (
            self.time_sensitivity == TimeSensitivity.BUSY_FROM_TO
            and self.time_range_start is not None
            and self.time_range_end is not None
            and self.time_range_end < self.time_range_start
        ):
            raise ValueError("time_range_end must not precede time_range_start")
        return self

    @property
    def is_time_sensitive(self) -> bool:
        return self.time_sensitivity != TimeSensitivity.NONE

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    @property
    def needs_travel(self) -> bool:
        """True when the location is a real place rather than Home/Anywhere."""
        if not self.is_location_sensitive or not self.location:
            return False
        return self.location.strip().lower() not in SENTINEL_LOCATIONS

    def touched(self, **changes) -> "Task":
        """Return a copy with ``changes`` applied and ``updated_at`` refreshed."""
        return self.model_copy(update={**changes, "updated_at": utcnow()})


class TaskGroup(BaseModel):
    """A named collection that exclusively owns its tasks."""

    id: UUID = Field(default_factory=uuid4)
    name: str
    kind: GroupKind = GroupKind.TOPIC
    tasks: List[Task] = Field(default_factory=list)

    def index_of(self, task_id: UUID) -> Optional[int]:
        for index, task in enumerate(self.tasks):
            if task.id == task_id:
                return index
        return None


class QueueEntry(BaseModel):
    """A task flagged for manual attention or automatic re-placement."""

    task: Task
    kind: QueueKind
    reason: Optional[str] = None
    queued_at: datetime = Field(default_factory=utcnow)

    @property
    def task_id(self) -> UUID:
        return self.task.id
