"""Task group routes."""
from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from dayplanner.api.deps import get_task_store
from dayplanner.api.schemas.task import GroupCreateRequest, GroupRenameRequest, GroupResponse, TaskResponse
from dayplanner.core.exceptions import NotFoundError
from dayplanner.models import TaskGroup
from dayplanner.services.task_store import TaskStore

router = APIRouter()


def _serialize(group: TaskGroup) -> GroupResponse:
    return GroupResponse(
        id=group.id,
        name=group.name,
        kind=group.kind,
        tasks=[TaskResponse.model_validate(task) for task in group.tasks],
    )


@router.get("/groups", response_model=List[GroupResponse], tags=["groups"])
def list_groups(store: TaskStore = Depends(get_task_store)) -> List[GroupResponse]:
    return [_serialize(group) for group in store.groups]


@router.post("/groups", response_model=GroupResponse, status_code=status.HTTP_201_CREATED, tags=["groups"])
def create_group(payload: GroupCreateRequest, store: TaskStore = Depends(get_task_store)) -> GroupResponse:
    return _serialize(store.add_group(payload.name.strip()))


@router.patch("/groups/{group_id}", response_model=GroupResponse, tags=["groups"])
def rename_group(
    group_id: UUID,
    payload: GroupRenameRequest,
    store: TaskStore = Depends(get_task_store),
) -> GroupResponse:
    group = store.rename_group(group_id, payload.name.strip())
    if group is None:
        raise NotFoundError(f"Group {group_id} not found")
    return _serialize(group)


@router.delete("/groups/{group_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["groups"])
def delete_group(group_id: UUID, store: TaskStore = Depends(get_task_store)) -> Response:
    if not store.delete_group(group_id):
        raise NotFoundError(f"Group {group_id} not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
