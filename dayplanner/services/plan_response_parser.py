"""Decode untrusted model output into validated plan entries."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, List, Optional, Union
from uuid import UUID, uuid4

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from dayplanner.core.exceptions import PlanValidationError, UpstreamFormatError
from dayplanner.models import PlannedTask, TimeSensitivity, Urgency
from dayplanner.services.time_math import (
    add_minutes,
    calculate_duration,
    format_time,
    normalize_time_string,
    parse_time_string,
)

logger = logging.getLogger(__name__)

NO_PLAN_FOUND = "no structured plan found"


class PlanEntryPayload(BaseModel):
    """Shape of one array element as the model is asked to return it."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: Optional[Union[str, int]] = None
    title: str = Field(..., min_length=1)
    start_time: str = Field(..., validation_alias=AliasChoices("start_time", "startTime"))
    end_time: Optional[str] = Field(default=None, validation_alias=AliasChoices("end_time", "endTime"))
    duration: Optional[int] = Field(default=None, ge=0)
    urgency: Optional[str] = None
    location: Optional[str] = None
    time_sensitivity: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("time_sensitivity", "timeSensitivity", "timeSensitivityType"),
    )
    notes: Optional[str] = None
    reason: Optional[str] = None


@dataclass(frozen=True)
class PlanParsed:
    entries: List[PlannedTask]


@dataclass(frozen=True)
class PlanParseFailure:
    error: UpstreamFormatError

    @property
    def reason(self) -> str:
        return self.error.reason

    @property
    def raw(self) -> str:
        return self.error.raw


PlanParseResult = Union[PlanParsed, PlanParseFailure]


def extract_json_array(raw: str) -> str:
    """Return the text between the first ``[`` and the last ``]``."""
    start = raw.find("[") if raw else -1
    end = raw.rfind("]") if raw else -1
    if start == -1 or end == -1 or end < start:
        raise UpstreamFormatError(NO_PLAN_FOUND, raw or "")
    return raw[start : end + 1]


def load_json_array(raw: str) -> List[Any]:
    snippet = extract_json_array(raw)
    try:
        payload = json.loads(snippet)
    except json.JSONDecodeError as exc:
        raise UpstreamFormatError(f"malformed JSON array: {exc.msg}", raw) from exc
    if not isinstance(payload, list):
        raise UpstreamFormatError("response is not a JSON array", raw)
    return payload


def parse_plan_response(raw: str, target_day: date) -> List[PlannedTask]:
    """Parse every element or fail; a single bad element rejects the batch."""
    elements = load_json_array(raw)
    entries: List[PlannedTask] = []
    for index, element in enumerate(elements):
        if not isinstance(element, dict):
            raise PlanValidationError(f"entry {index} is not an object", raw, index=index)
        try:
            payload = PlanEntryPayload.model_validate(element)
        except ValidationError as exc:
            raise PlanValidationError(f"entry {index} failed validation: {_first_error(exc)}", raw, index=index) from exc
        entries.append(_to_planned_task(payload, target_day, raw, index))
    logger.debug("Parsed %d plan entries for %s", len(entries), target_day.isoformat())
    return entries


def decode_plan(raw: str, target_day: date) -> PlanParseResult:
    """Non-raising variant returning a tagged result."""
    try:
        return PlanParsed(parse_plan_response(raw, target_day))
    except UpstreamFormatError as exc:
        return PlanParseFailure(exc)


def _to_planned_task(payload: PlanEntryPayload, target_day: date, raw: str, index: int) -> PlannedTask:
    end_time = payload.end_time
    if not end_time:
        start = parse_time_string(payload.start_time)
        if start is None or payload.duration is None:
            raise PlanValidationError(f"entry {index} has no end_time", raw, index=index)
        end_time = format_time(add_minutes(start, payload.duration))

    duration = payload.duration
    if duration is None:
        duration = calculate_duration(payload.start_time, end_time)

    return PlannedTask(
        id=_coerce_id(payload.id),
        start_time=normalize_time_string(payload.start_time),
        end_time=normalize_time_string(end_time),
        title=payload.title.strip(),
        notes=payload.notes,
        reason=payload.reason,
        date=target_day,
        duration=duration,
        urgency=Urgency.parse(payload.urgency),
        time_sensitivity=TimeSensitivity.parse(payload.time_sensitivity),
        location=payload.location or None,
    )


def _coerce_id(value: Optional[Union[str, int]]) -> UUID:
    if value:
        try:
            return UUID(str(value))
        except ValueError:
            logger.debug("Replacing non-UUID plan entry id %r", value)
    return uuid4()


def _first_error(exc: ValidationError) -> str:
    error = exc.errors()[0]
    location = ".".join(str(part) for part in error.get("loc", ()))
    return f"{location}: {error.get('msg')}" if location else str(error.get("msg"))
