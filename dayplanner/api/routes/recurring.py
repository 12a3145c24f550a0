"""Recurring task template routes."""
from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from pydantic import ValidationError

from dayplanner.api.deps import get_planner, get_template_store
from dayplanner.api.schemas.recurring import (
    ExpandTemplateRequest,
    ExpandTemplateResponse,
    RecurringTemplateRequest,
    RecurringTemplateResponse,
)
from dayplanner.core.exceptions import NotFoundError
from dayplanner.models import RecurringTaskTemplate
from dayplanner.observability.metrics import log_metric
from dayplanner.observability.tracing import trace
from dayplanner.services.planner_service import PlannerService
from dayplanner.services.recurring_templates import RecurringTemplateStore

router = APIRouter()


def _build(payload: RecurringTemplateRequest, **extra) -> RecurringTaskTemplate:
    try:
        return RecurringTaskTemplate(**payload.model_dump(), **extra)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=exc.errors(include_url=False, include_context=False, include_input=False),
        ) from exc


@router.get("/recurring-tasks", response_model=List[RecurringTemplateResponse], tags=["recurring"])
def list_templates(store: RecurringTemplateStore = Depends(get_template_store)) -> List[RecurringTemplateResponse]:
    return [RecurringTemplateResponse.model_validate(t.model_dump()) for t in store.list_templates()]


@router.post(
    "/recurring-tasks",
    response_model=RecurringTemplateResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["recurring"],
)
def create_template(
    payload: RecurringTemplateRequest,
    store: RecurringTemplateStore = Depends(get_template_store),
) -> RecurringTemplateResponse:
    template = store.add(_build(payload))
    return RecurringTemplateResponse.model_validate(template.model_dump())


@router.put("/recurring-tasks/{template_id}", response_model=RecurringTemplateResponse, tags=["recurring"])
def update_template(
    template_id: UUID,
    payload: RecurringTemplateRequest,
    store: RecurringTemplateStore = Depends(get_template_store),
) -> RecurringTemplateResponse:
    updated = store.update(_build(payload, id=template_id))
    if updated is None:
        raise NotFoundError(f"Recurring template {template_id} not found")
    return RecurringTemplateResponse.model_validate(updated.model_dump())


@router.delete("/recurring-tasks/{template_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["recurring"])
def delete_template(template_id: UUID, store: RecurringTemplateStore = Depends(get_template_store)) -> Response:
    if not store.delete(template_id):
        raise NotFoundError(f"Recurring template {template_id} not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/recurring-tasks/{template_id}/expand", response_model=ExpandTemplateResponse, tags=["recurring"])
def expand_template(
    template_id: UUID,
    http_request: Request,
    payload: Optional[ExpandTemplateRequest] = None,
    planner: PlannerService = Depends(get_planner),
) -> ExpandTemplateResponse:
    """Create dated task instances for the template over the configured horizon."""
    request_id = getattr(http_request.state, "request_id", None)
    start = payload.start if payload else None
    with trace(
        "recurring.expand",
        metadata={"route": "/recurring-tasks/{id}/expand", "template_id": str(template_id)},
        request_id=request_id,
    ):
        created = planner.expand_recurring_task(template_id, start=start)
    log_metric("recurring.expand.created", len(created), metadata={"template_id": str(template_id)})
    dates = [task.date for task in created if task.date is not None]
    return ExpandTemplateResponse(
        template_id=template_id,
        created=len(created),
        first_date=min(dates) if dates else None,
        last_date=max(dates) if dates else None,
    )
