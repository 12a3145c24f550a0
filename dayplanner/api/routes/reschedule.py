"""Reschedule queue routes."""
from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Request, Response, status

from dayplanner.api.deps import get_container, get_planner, get_task_store
from dayplanner.api.routes.plans import proposal_response
from dayplanner.api.schemas.plan import OptimizeQueueRequest, PlanProposalResponse
from dayplanner.api.schemas.task import QueueEntryResponse, TaskResponse
from dayplanner.container import ServiceContainer
from dayplanner.core.exceptions import NotFoundError
from dayplanner.models import QueueEntry, QueueKind
from dayplanner.observability.metrics import log_metric
from dayplanner.observability.tracing import trace
from dayplanner.services.planner_service import PlannerService
from dayplanner.services.task_store import TaskStore

router = APIRouter()


def queue_entry_response(entry: QueueEntry) -> QueueEntryResponse:
    return QueueEntryResponse(
        task=TaskResponse.model_validate(entry.task),
        kind=entry.kind,
        reason=entry.reason,
        queued_at=entry.queued_at,
    )


@router.get("/reschedule-queue", response_model=List[QueueEntryResponse], tags=["reschedule"])
def list_queue(
    kind: Optional[QueueKind] = None,
    store: TaskStore = Depends(get_task_store),
) -> List[QueueEntryResponse]:
    kinds = [kind] if kind is not None else [QueueKind.MANUAL, QueueKind.AUTOMATIC]
    return [queue_entry_response(entry) for k in kinds for entry in store.queue(k)]


@router.post("/reschedule-queue/scan", response_model=List[QueueEntryResponse], tags=["reschedule"])
def scan_queue(
    http_request: Request,
    container: ServiceContainer = Depends(get_container),
) -> List[QueueEntryResponse]:
    """Deduplicate the stores and queue overlapping time-sensitive tasks."""
    request_id = getattr(http_request.state, "request_id", None)
    with trace("reschedule.scan", metadata={"route": "/reschedule-queue/scan"}, request_id=request_id):
        report = container.reconciler.reconcile()
    log_metric("reschedule.scan.conflicts", report.conflicts_queued, metadata={"duplicates": report.duplicates_removed})
    return [queue_entry_response(entry) for entry in container.task_store.queue(QueueKind.AUTOMATIC)]


@router.post("/reschedule-queue/optimize", response_model=PlanProposalResponse, tags=["reschedule"])
async def optimize_queue(
    http_request: Request,
    payload: OptimizeQueueRequest = OptimizeQueueRequest(),
    planner: PlannerService = Depends(get_planner),
) -> PlanProposalResponse:
    """Ask the model for new slots for queued tasks; accept via the plans routes."""
    request_id = getattr(http_request.state, "request_id", None)
    with trace("http.reschedule.optimize", metadata={"route": "/reschedule-queue/optimize"}, request_id=request_id):
        session = await planner.optimize_reschedule_queue(
            task_ids=payload.task_ids,
            deadlines=payload.deadlines,
            day=payload.day,
            notes=payload.notes,
        )
    return proposal_response(session)


@router.delete("/reschedule-queue/{task_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["reschedule"])
def resolve_entry(task_id: UUID, store: TaskStore = Depends(get_task_store)) -> Response:
    if not store.resolve(task_id):
        raise NotFoundError(f"Task {task_id} is not queued")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
