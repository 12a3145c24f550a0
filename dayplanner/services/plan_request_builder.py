"""Render tasks and commitments into a self-contained planning request."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from typing import Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from dayplanner.models import Task, TimeSensitivity
from dayplanner.services.time_math import format_instant, format_time, medium_date_string

FREE_TIME_THRESHOLD_MINUTES = 30

SYSTEM_PROMPT = (
    "You are a meticulous personal scheduling assistant. You arrange a person's tasks into a realistic "
    "itinerary and answer with a raw JSON array only."
)

PLANNING_RULES: Tuple[str, ...] = (
    "Every entry must include a short \"reason\" explaining why it was placed at that time.",
    "Times of time-sensitive tasks (due by, starts at, busy from-to) are fixed. Do not move them unless two "
    "of them conflict and no other arrangement exists; explain any such move in \"reason\".",
    "Travel between two different locations must be its own entry titled \"Travel to <destination>\". "
    "\"Home\" and \"Anywhere\" never require travel. If the first task is elsewhere, start with travel "
    "from the starting location.",
    f"Any gap of {FREE_TIME_THRESHOLD_MINUTES} minutes or more between entries must be its own entry titled "
    "\"Free Time\".",
    "Only low-urgency tasks may be dropped, and only when there is no room left for them. Mention dropped "
    "tasks in the \"reason\" of the nearest entry.",
    "Do not double-book any already committed event listed below, and do not include those events in the answer.",
    "Use 12-hour times such as \"9:00 AM\" or \"1:15 PM\" for start_time and end_time.",
    "Copy the \"id\" of every task you schedule exactly as given. Travel and free-time entries have \"id\": null.",
)

OUTPUT_EXAMPLE = [
    {
        "id": None,
        "title": "Travel to Dentist",
        "start_time": "8:30 AM",
        "end_time": "9:00 AM",
        "duration": 30,
        "urgency": None,
        "location": "123 Main St",
        "time_sensitivity": None,
        "notes": "30 min drive from home.",
        "reason": "Arrive on time for the 9:00 AM appointment.",
    },
    {
        "id": "<task id>",
        "title": "Dentist",
        "start_time": "9:00 AM",
        "end_time": "9:45 AM",
        "duration": 45,
        "urgency": "high",
        "location": "123 Main St",
        "time_sensitivity": "starts_at",
        "notes": "Bring insurance card.",
        "reason": "Fixed appointment time.",
    },
]


@dataclass(frozen=True)
class CommittedEvent:
    """Something already on the calendar that the plan must work around."""

    title: str
    start: datetime
    end: Optional[datetime] = None

    @classmethod
    def from_task(cls, task: Task) -> Optional["CommittedEvent"]:
        if task.time_sensitivity == TimeSensitivity.BUSY_FROM_TO and task.time_range_start:
            return cls(task.title, task.time_range_start, task.time_range_end)
        if task.exact_time is not None:
            return cls(task.title, task.exact_time, task.exact_time + timedelta(minutes=task.duration))
        return None


@dataclass
class PlanningContext:
    window_start: datetime
    window_end: datetime
    current_time: datetime
    transport_mode: str = "drive"
    current_location: Optional[str] = None
    home_address: Optional[str] = None
    wake_time: Optional[time] = None
    sleep_time: Optional[time] = None
    notes: List[str] = field(default_factory=list)


@dataclass
class PlanRequest:
    tasks: Sequence[Task]
    context: PlanningContext
    deadlines: Dict[UUID, datetime] = field(default_factory=dict)
    committed: Sequence[CommittedEvent] = ()
    travel_minutes: Dict[UUID, int] = field(default_factory=dict)


@dataclass(frozen=True)
class PlanRequestDocument:
    system: str
    prompt: str


def assumed_start(task: Task, deadline: Optional[datetime] = None) -> Optional[datetime]:
    """Latest sensible start implied by a task's timing constraint."""
    if deadline is not None:
        return deadline - timedelta(minutes=task.duration)
    if task.time_sensitivity == TimeSensitivity.DUE_BY and task.exact_time:
        return task.exact_time - timedelta(minutes=task.duration)
    if task.time_sensitivity == TimeSensitivity.STARTS_AT and task.exact_time:
        return task.exact_time
    if task.time_sensitivity == TimeSensitivity.BUSY_FROM_TO and task.time_range_start:
        return task.time_range_start
    return None


class PlanRequestBuilder:
    """Builds the request text; identical inputs always give identical text."""

    def __init__(self, system_prompt: str = SYSTEM_PROMPT) -> None:
        self.system_prompt = system_prompt

    def build(self, request: PlanRequest) -> PlanRequestDocument:
        context = request.context
        sections = [
            self._header(context),
            self._rules_section(context),
            self._tasks_section(request),
            self._committed_section(request.committed),
        ]
        if context.notes:
            sections.append("Additional notes from the user:\n" + "\n".join(f"- {note}" for note in context.notes))
        sections.append(self._output_section())
        return PlanRequestDocument(system=self.system_prompt, prompt="\n\n".join(sections))

    def _header(self, context: PlanningContext) -> str:
        lines = [
            f"Plan the day of {medium_date_string(context.window_start.date())}.",
            f"Schedule window: {format_instant(context.window_start)} to {format_instant(context.window_end)}.",
            f"Current time: {format_instant(context.current_time)}.",
            f"Transportation mode: {context.transport_mode}.",
            f"Starting location: {context.current_location or context.home_address or 'Home'}.",
        ]
        if context.home_address:
            lines.append(f"Home address: {context.home_address}.")
        return "\n".join(lines)

    def _rules_section(self, context: PlanningContext) -> str:
        rules = list(PLANNING_RULES)
        if context.wake_time and context.sleep_time:
            rules.append(
                f"Do not schedule anything before {format_time(context.wake_time)} or after "
                f"{format_time(context.sleep_time)}."
            )
        return "Rules you must follow:\n" + "\n".join(f"{index}. {rule}" for index, rule in enumerate(rules, 1))

    def _tasks_section(self, request: PlanRequest) -> str:
        if not request.tasks:
            return "Tasks to schedule: none."
        blocks = [self._task_block(task, request) for task in request.tasks]
        return f"Tasks to schedule ({len(blocks)}):\n\n" + "\n\n".join(blocks)

    def _task_block(self, task: Task, request: PlanRequest) -> str:
        deadline = request.deadlines.get(task.id)
        lines = [
            f"id: {task.id}",
            f"Title: {task.title}",
            f"Duration: {task.duration} minutes",
            f"Urgency: {task.urgency.value}",
            f"Time sensitivity: {task.time_sensitivity.label}",
        ]
        if task.time_sensitivity == TimeSensitivity.DUE_BY and task.exact_time:
            lines.append(f"Due by: {format_time(task.exact_time)}")
        elif task.time_sensitivity == TimeSensitivity.STARTS_AT and task.exact_time:
            lines.append(f"Starts at: {format_time(task.exact_time)}")
        elif task.time_sensitivity == TimeSensitivity.BUSY_FROM_TO and task.time_range_start and task.time_range_end:
            lines.append(f"Busy from: {format_time(task.time_range_start)} to {format_time(task.time_range_end)}")
        if deadline is not None:
            lines.append(f"Hard deadline: {format_instant(deadline)}")
        start = assumed_start(task, deadline)
        if start is not None:
            lines.append(f"Assumed start: {format_time(start)}")
        lines.append(f"Location: {task.location if task.is_location_sensitive and task.location else 'Anywhere'}")
        travel = request.travel_minutes.get(task.id)
        if travel is not None:
            lines.append(f"Estimated travel from starting location: {travel} minutes")
        lines.append(f"Category: {task.category}")
        return "\n".join(lines)

    def _committed_section(self, committed: Sequence[CommittedEvent]) -> str:
        if not committed:
            return "Already committed events: none."
        lines = []
        for event in committed:
            if event.end is not None:
                lines.append(f"- {event.title}: {format_instant(event.start)} to {format_time(event.end)}")
            else:
                lines.append(f"- {event.title}: {format_instant(event.start)}")
        return "Already committed events (do not double-book):\n" + "\n".join(lines)

    def _output_section(self) -> str:
        return (
            "Respond with only a raw JSON array of entries ordered by start time, each with the keys "
            "id, title, start_time, end_time, duration, urgency, location, time_sensitivity, notes, reason. "
            "No introduction, markdown or commentary. Example:\n"
            f"{json.dumps(OUTPUT_EXAMPLE, indent=2)}"
        )
