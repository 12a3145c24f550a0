"""Turn free text into draft tasks through the language model."""
from __future__ import annotations

import json
import logging
from datetime import date, date as date_type
from typing import Dict, List, Optional, Sequence

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from dayplanner.core.exceptions import PlanValidationError
from dayplanner.models import ANYWHERE_LOCATION, Task, TimeSensitivity, Urgency
from dayplanner.models.enums import SENTINEL_LOCATIONS
from dayplanner.services.plan_request_builder import PlanRequestDocument
from dayplanner.services.plan_response_parser import load_json_array
from dayplanner.services.time_math import reanchor, parse_time_string

logger = logging.getLogger(__name__)

EXPANSION_SYSTEM_PROMPT = (
    "You are a productivity assistant that extracts actionable tasks from a person's notes and answers "
    "with a raw JSON array only."
)

EXPANSION_EXAMPLE = [
    {
        "title": "Prepare design presentation",
        "duration": 120,
        "urgency": "High",
        "time_sensitivity": "Starts at",
        "exact_time": "8:00 AM",
        "time_range_start": None,
        "time_range_end": None,
        "location": "Office",
        "category": "Work",
        "date": "2026-05-01",
    },
    {
        "title": "Grocery shopping",
        "duration": 45,
        "urgency": "Medium",
        "time_sensitivity": "None",
        "exact_time": None,
        "time_range_start": None,
        "time_range_end": None,
        "location": "Supermarket",
        "category": "Errands",
        "date": None,
    },
]


class ExpandedTaskPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str = Field(..., min_length=1)
    duration: int = Field(default=30, ge=0)
    urgency: Optional[str] = None
    time_sensitivity: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("time_sensitivity", "timeSensitivityType", "timeSensitivity"),
    )
    exact_time: Optional[str] = Field(default=None, validation_alias=AliasChoices("exact_time", "exactTime"))
    time_range_start: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("time_range_start", "timeRangeStart")
    )
    time_range_end: Optional[str] = Field(default=None, validation_alias=AliasChoices("time_range_end", "timeRangeEnd"))
    location: Optional[str] = None
    category: Optional[str] = None
    date: Optional[date_type] = None


def schedule_context(schedule: Dict[date, Sequence[str]]) -> str:
    if not schedule:
        return "The user has no existing tasks."
    lines = ["Existing tasks by day:"]
    for day in sorted(schedule):
        lines.append(f"{day.isoformat()}:")
        lines.extend(f"- {title}" for title in schedule[day])
    return "\n".join(lines)


def build_expansion_request(text: str, schedule: Dict[date, Sequence[str]], today: date) -> PlanRequestDocument:
    prompt = "\n\n".join(
        [
            f"Today is {today.isoformat()}.",
            "Extract every actionable task from the user's text. Take the existing schedule into account so "
            "new tasks do not collide with it.",
            schedule_context(schedule),
            "For each task provide: title, duration (minutes), urgency (High, Medium, Low), time_sensitivity "
            "(None, Due by, Starts at, Busy from-to), exact_time for Due by / Starts at tasks and "
            "time_range_start / time_range_end for Busy from-to tasks (all as \"h:mm AM\"), location "
            "(\"Home\", \"Anywhere\" or a place), category (Work, Health, Errands, Personal, Chores) and "
            "date (\"YYYY-MM-DD\" when the text names one, otherwise null). Use \"Personal\" when the category "
            "is unclear and \"Anywhere\" when the location is unclear.",
            "Respond with only a raw JSON array. Example:\n" + json.dumps(EXPANSION_EXAMPLE, indent=2),
            f'User text:\n"""\n{text.strip()}\n"""',
        ]
    )
    return PlanRequestDocument(system=EXPANSION_SYSTEM_PROMPT, prompt=prompt)


def parse_expanded_tasks(raw: str, default_day: date) -> List[Task]:
    """Draft tasks from the model's answer; not stored until the user adds them."""
    elements = load_json_array(raw)
    tasks: List[Task] = []
    for index, element in enumerate(elements):
        if not isinstance(element, dict):
            raise PlanValidationError(f"task {index} is not an object", raw, index=index)
        try:
            payload = ExpandedTaskPayload.model_validate(element)
            tasks.append(_to_task(payload, default_day))
        except ValidationError as exc:
            raise PlanValidationError(f"task {index} failed validation", raw, index=index) from exc
    logger.debug("Expanded text into %d draft tasks", len(tasks))
    return tasks


def _to_task(payload: ExpandedTaskPayload, default_day: date) -> Task:
    day = payload.date or default_day
    kind = TimeSensitivity.parse(payload.time_sensitivity, TimeSensitivity.NONE)
    location = (payload.location or "").strip() or ANYWHERE_LOCATION

    exact_time = None
    range_start = None
    range_end = None
    if kind in (TimeSensitivity.DUE_BY, TimeSensitivity.STARTS_AT):
        exact_time = reanchor(parse_time_string(payload.exact_time), day)
    elif kind == TimeSensitivity.BUSY_FROM_TO:
        range_start = reanchor(parse_time_string(payload.time_range_start), day)
        range_end = reanchor(parse_time_string(payload.time_range_end), day)
        if range_start and range_end and range_end < range_start:
            range_end = None

    return Task(
        title=payload.title.strip(),
        duration=payload.duration,
        urgency=Urgency.parse(payload.urgency, Urgency.MEDIUM),
        time_sensitivity=kind,
        exact_time=exact_time,
        time_range_start=range_start,
        time_range_end=range_end,
        is_location_sensitive=location.lower() not in SENTINEL_LOCATIONS,
        location=location,
        category=(payload.category or "").strip() or "Personal",
        date=day,
    )
