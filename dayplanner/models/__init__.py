"""Domain models exposed for convenience imports."""
from dayplanner.models.enums import (
    ANYWHERE_LOCATION,
    HOME_LOCATION,
    GroupKind,
    QueueKind,
    RecurrenceInterval,
    TaskStatus,
    TimeSensitivity,
    Urgency,
)
from dayplanner.models.plan import PlannedTask
from dayplanner.models.recurring import RecurringTaskTemplate
from dayplanner.models.task import QueueEntry, Task, TaskGroup, utcnow

__all__ = [
    "ANYWHERE_LOCATION",
    "GroupKind",
    "HOME_LOCATION",
    "PlannedTask",
    "QueueEntry",
    "QueueKind",
    "RecurrenceInterval",
    "RecurringTaskTemplate",
    "Task",
    "TaskGroup",
    "TaskStatus",
    "TimeSensitivity",
    "Urgency",
    "utcnow",
]
