"""Enumerations shared by tasks, templates and plans."""
from __future__ import annotations

import re
from enum import Enum
from typing import Optional


def _normalize_label(value: str) -> str:
    # "Due by" / "dueBy" / "due-by" / "DUE_BY" all collapse to "dueby"
    return re.sub(r"[^a-z]", "", value.lower())


class Urgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def parse(cls, value: Optional[str], default: Optional["Urgency"] = None) -> Optional["Urgency"]:
        """Lenient lookup used for model output; unknown labels fall back to ``default``."""
        if not value:
            return default
        key = _normalize_label(value)
        for member in cls:
            if member.value == key:
                return member
        return default


class TimeSensitivity(str, Enum):
    NONE = "none"
    DUE_BY = "due_by"
    STARTS_AT = "starts_at"
    BUSY_FROM_TO = "busy_from_to"

    @classmethod
    def parse(cls, value: Optional[str], default: Optional["TimeSensitivity"] = None) -> Optional["TimeSensitivity"]:
        if not value:
            return default
        key = _normalize_label(value)
        return _TIME_SENSITIVITY_LABELS.get(key, default)

    @property
    def label(self) -> str:
        return _TIME_SENSITIVITY_DISPLAY[self]


_TIME_SENSITIVITY_LABELS = {
    "none": TimeSensitivity.NONE,
    "na": TimeSensitivity.NONE,
    "dueby": TimeSensitivity.DUE_BY,
    "startsat": TimeSensitivity.STARTS_AT,
    "busyfromto": TimeSensitivity.BUSY_FROM_TO,
    "busy": TimeSensitivity.BUSY_FROM_TO,
}

_TIME_SENSITIVITY_DISPLAY = {
    TimeSensitivity.NONE: "None",
    TimeSensitivity.DUE_BY: "Due by",
    TimeSensitivity.STARTS_AT: "Starts at",
    TimeSensitivity.BUSY_FROM_TO: "Busy from-to",
}


class TaskStatus(str, Enum):
    ACTIVE = "active"
    QUEUED = "queued"
    COMPLETED = "completed"


class RecurrenceInterval(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class QueueKind(str, Enum):
    MANUAL = "manual"
    AUTOMATIC = "automatic"


class GroupKind(str, Enum):
    TOPIC = "topic"
    DATE = "date"


HOME_LOCATION = "Home"
ANYWHERE_LOCATION = "Anywhere"
SENTINEL_LOCATIONS = frozenset({HOME_LOCATION.lower(), ANYWHERE_LOCATION.lower()})
