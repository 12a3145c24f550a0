"""Task command routes."""
from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from pydantic import ValidationError

from dayplanner.api.deps import get_plan_store, get_planner, get_task_store
from dayplanner.api.routes.reschedule import queue_entry_response
from dayplanner.api.schemas.plan import PlannedEntryResponse
from dayplanner.api.schemas.task import (
    DayViewResponse,
    ExpandTextRequest,
    ExpandTextResponse,
    QueueEntryResponse,
    RescheduleRequest,
    TaskCreateRequest,
    TaskResponse,
    TaskUpdateRequest,
)
from dayplanner.core.exceptions import NotFoundError
from dayplanner.models import Task, TaskStatus, TimeSensitivity
from dayplanner.models.enums import SENTINEL_LOCATIONS
from dayplanner.observability.metrics import log_metric
from dayplanner.observability.tracing import trace
from dayplanner.services.daily_plan_store import DailyPlanStore
from dayplanner.services.day_view import build_day_view
from dayplanner.services.planner_service import PlannerService
from dayplanner.services.task_store import TaskStore
from dayplanner.services.time_math import minutes_between

router = APIRouter()

DEFAULT_DURATION = 30


def _location_sensitive(location: Optional[str]) -> bool:
    return bool(location and location.strip()) and location.strip().lower() not in SENTINEL_LOCATIONS


def _initial_duration(payload: TaskCreateRequest) -> int:
    if payload.duration is not None:
        return payload.duration
    start, end = payload.time_range_start, payload.time_range_end
    if payload.time_sensitivity == TimeSensitivity.BUSY_FROM_TO and start and end and end >= start:
        return minutes_between(start, end)
    return DEFAULT_DURATION


def _unprocessable(exc: ValidationError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail=exc.errors(include_url=False, include_context=False, include_input=False),
    )


@router.get("/tasks", response_model=List[TaskResponse], tags=["tasks"])
def list_tasks(
    day: Optional[date] = Query(default=None),
    status_filter: Optional[TaskStatus] = Query(default=None, alias="status"),
    store: TaskStore = Depends(get_task_store),
) -> List[TaskResponse]:
    tasks = store.all_tasks()
    if day is not None:
        tasks = [task for task in tasks if task.date == day]
    if status_filter is not None:
        tasks = [task for task in tasks if task.status == status_filter]
    return [TaskResponse.model_validate(task) for task in tasks]


@router.post("/tasks", response_model=TaskResponse, status_code=status.HTTP_201_CREATED, tags=["tasks"])
def create_task(
    payload: TaskCreateRequest,
    http_request: Request,
    store: TaskStore = Depends(get_task_store),
) -> TaskResponse:
    request_id = getattr(http_request.state, "request_id", None)
    fields = payload.model_dump(exclude={"group_id"})
    fields["duration"] = _initial_duration(payload)
    try:
        task = Task(**fields, is_location_sensitive=_location_sensitive(payload.location))
    except ValidationError as exc:
        raise _unprocessable(exc) from exc

    with trace("task.create", metadata={"route": "/tasks", "task_id": str(task.id)}, request_id=request_id):
        created = store.add_task(task, group_id=payload.group_id)
    log_metric("task.create.success", 1, metadata={"category": created.category})
    return TaskResponse.model_validate(created)


@router.put("/tasks/{task_id}", response_model=TaskResponse, tags=["tasks"])
def update_task(
    task_id: UUID,
    payload: TaskUpdateRequest,
    store: TaskStore = Depends(get_task_store),
) -> TaskResponse:
    current = store.get_task(task_id)
    if current is None:
        raise NotFoundError(f"Task {task_id} not found")
    changes: Dict[str, Any] = payload.model_dump(exclude_unset=True)
    if "location" in changes:
        changes["is_location_sensitive"] = _location_sensitive(changes["location"])
    try:
        candidate = Task.model_validate({**current.model_dump(), **changes})
    except ValidationError as exc:
        raise _unprocessable(exc) from exc
    updated = store.update_task(candidate)
    if updated is None:
        raise NotFoundError(f"Task {task_id} not found")
    return TaskResponse.model_validate(updated)


@router.delete("/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["tasks"])
def delete_task(task_id: UUID, store: TaskStore = Depends(get_task_store)) -> Response:
    if not store.delete_task(task_id):
        raise NotFoundError(f"Task {task_id} not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/tasks/{task_id}/complete", response_model=TaskResponse, tags=["tasks"])
def complete_task(task_id: UUID, store: TaskStore = Depends(get_task_store)) -> TaskResponse:
    completed = store.complete_task(task_id)
    if completed is None:
        raise NotFoundError(f"Task {task_id} not found")
    log_metric("task.complete.success", 1, metadata={"task_id": str(task_id)})
    return TaskResponse.model_validate(completed)


@router.post("/tasks/{task_id}/reschedule", response_model=QueueEntryResponse, tags=["tasks"])
def request_reschedule(
    task_id: UUID,
    payload: RescheduleRequest,
    store: TaskStore = Depends(get_task_store),
) -> QueueEntryResponse:
    entry = store.move_to_queue(task_id, payload.kind, reason=payload.reason)
    if entry is None:
        raise NotFoundError(f"Task {task_id} not found")
    return queue_entry_response(entry)


@router.post("/tasks/expand", response_model=ExpandTextResponse, tags=["tasks"])
async def expand_text(
    payload: ExpandTextRequest,
    http_request: Request,
    planner: PlannerService = Depends(get_planner),
) -> ExpandTextResponse:
    """Draft tasks from free text. The drafts are returned, not stored."""
    request_id = getattr(http_request.state, "request_id", None)
    drafts = await planner.expand_text(payload.text, today=payload.date)
    return ExpandTextResponse(
        tasks=[TaskResponse.model_validate(task) for task in drafts],
        request_id=request_id,
    )


@router.get("/days/{day}", response_model=DayViewResponse, tags=["tasks"])
def day_view(
    day: date,
    store: TaskStore = Depends(get_task_store),
    plan_store: DailyPlanStore = Depends(get_plan_store),
) -> DayViewResponse:
    view = build_day_view(store, plan_store, day)
    return DayViewResponse(
        day=view.day,
        scheduled=[TaskResponse.model_validate(task) for task in view.scheduled],
        unscheduled=[TaskResponse.model_validate(task) for task in view.unscheduled],
        plan_entries=[PlannedEntryResponse.model_validate(entry) for entry in view.plan_entries],
    )
