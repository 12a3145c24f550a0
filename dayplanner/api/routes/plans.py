"""Plan generation, acceptance and day plan routes."""
from __future__ import annotations

from datetime import date
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Request, Response, status

from dayplanner.api.deps import get_plan_store, get_planner
from dayplanner.api.schemas.plan import (
    AcceptPlanRequest,
    AcceptPlanResponse,
    DayPlanResponse,
    GeneratePlanRequest,
    PlannedEntryInput,
    PlannedEntryResponse,
    PlanProposalResponse,
    RegeneratePlanRequest,
)
from dayplanner.core.exceptions import NotFoundError
from dayplanner.models import PlannedTask
from dayplanner.observability.metrics import log_metric
from dayplanner.observability.tracing import trace
from dayplanner.services.daily_plan_store import DailyPlanStore
from dayplanner.services.planner_service import PlannerService, PlanSession
from dayplanner.services.time_math import calculate_duration, normalize_time_string

router = APIRouter()


def proposal_response(session: PlanSession) -> PlanProposalResponse:
    return PlanProposalResponse(
        request_id=session.request_id,
        day=session.day,
        kind=session.kind.value,
        entries=[PlannedEntryResponse.model_validate(entry) for entry in session.entries],
        notes=list(session.notes),
    )


def _to_planned(day: date, entry: PlannedEntryInput) -> PlannedTask:
    start = normalize_time_string(entry.start_time)
    end = normalize_time_string(entry.end_time)
    duration = entry.duration if entry.duration is not None else calculate_duration(start, end)
    return PlannedTask(
        id=entry.id,
        start_time=start,
        end_time=end,
        title=entry.title,
        notes=entry.notes,
        reason=entry.reason,
        date=day,
        duration=duration,
        urgency=entry.urgency,
        time_sensitivity=entry.time_sensitivity,
        location=entry.location,
    )


@router.post("/plans/generate", response_model=PlanProposalResponse, tags=["plans"])
async def generate_plan(
    payload: GeneratePlanRequest,
    http_request: Request,
    planner: PlannerService = Depends(get_planner),
) -> PlanProposalResponse:
    """Ask the model for a proposed plan. Nothing is committed until accepted."""
    request_id = getattr(http_request.state, "request_id", None)
    with trace(
        "http.plans.generate",
        metadata={"route": "/plans/generate", "day": payload.day.isoformat()},
        request_id=request_id,
    ):
        session = await planner.generate_plan(
            payload.day,
            group_id=payload.group_id,
            transport_mode=payload.transport_mode,
            notes=payload.notes,
        )
    log_metric("plan.generate.entries", len(session.entries), metadata={"day": payload.day.isoformat()})
    return proposal_response(session)


@router.get("/plans/requests/{plan_request_id}", response_model=PlanProposalResponse, tags=["plans"])
def get_proposal(plan_request_id: UUID, planner: PlannerService = Depends(get_planner)) -> PlanProposalResponse:
    return proposal_response(planner.get_session(plan_request_id))


@router.post("/plans/{plan_request_id}/regenerate", response_model=PlanProposalResponse, tags=["plans"])
async def regenerate_plan(
    plan_request_id: UUID,
    http_request: Request,
    payload: RegeneratePlanRequest = RegeneratePlanRequest(),
    planner: PlannerService = Depends(get_planner),
) -> PlanProposalResponse:
    request_id = getattr(http_request.state, "request_id", None)
    with trace(
        "http.plans.regenerate",
        metadata={"route": "/plans/{id}/regenerate", "previous": str(plan_request_id)},
        request_id=request_id,
    ):
        session = await planner.regenerate_plan(plan_request_id, notes=payload.notes)
    return proposal_response(session)


@router.post("/plans/{plan_request_id}/accept", response_model=AcceptPlanResponse, tags=["plans"])
async def accept_plan(
    plan_request_id: UUID,
    http_request: Request,
    payload: AcceptPlanRequest = AcceptPlanRequest(),
    planner: PlannerService = Depends(get_planner),
) -> AcceptPlanResponse:
    """Commit a proposal, optionally with the user's edited entries."""
    request_id = getattr(http_request.state, "request_id", None)
    session = planner.get_session(plan_request_id)
    entries = None
    if payload.entries is not None:
        entries = [_to_planned(session.day, entry) for entry in payload.entries]
    with trace(
        "http.plans.accept",
        metadata={"route": "/plans/{id}/accept", "request": str(plan_request_id)},
        request_id=request_id,
    ):
        result = await planner.accept_plan(plan_request_id, entries)
    return AcceptPlanResponse(
        day=session.day,
        updated_task_ids=[task.id for task in result.updated_tasks],
        plan_only=[PlannedEntryResponse.model_validate(entry) for entry in result.plan_only],
    )


@router.get("/plans", response_model=List[date], tags=["plans"])
def list_plan_days(store: DailyPlanStore = Depends(get_plan_store)) -> List[date]:
    return store.days()


@router.get("/plans/{day}", response_model=DayPlanResponse, tags=["plans"])
def get_day_plan(day: date, store: DailyPlanStore = Depends(get_plan_store)) -> DayPlanResponse:
    entries = store.get_plan(day)
    return DayPlanResponse(day=day, entries=[PlannedEntryResponse.model_validate(e) for e in entries])


@router.delete("/plans/{day}", status_code=status.HTTP_204_NO_CONTENT, tags=["plans"])
def clear_day_plan(day: date, store: DailyPlanStore = Depends(get_plan_store)) -> Response:
    if not store.clear_plan(day):
        raise NotFoundError(f"No plan stored for {day.isoformat()}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/plans/{day}/entries/{entry_id}/complete", response_model=PlannedEntryResponse, tags=["plans"])
def complete_entry(
    day: date,
    entry_id: UUID,
    completed: bool = True,
    store: DailyPlanStore = Depends(get_plan_store),
) -> PlannedEntryResponse:
    entry = store.mark_completed(day, entry_id, completed)
    if entry is None:
        raise NotFoundError(f"Plan entry {entry_id} not found on {day.isoformat()}")
    return PlannedEntryResponse.model_validate(entry)
