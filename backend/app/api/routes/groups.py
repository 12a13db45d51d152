from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from app.api.deps import get_actor, get_db, get_event_bus
from app.schemas.bulk import BulkOperationResult
from app.schemas.groups import (
    GroupCreate,
    GroupOut,
    GroupRestore,
    GroupScheduleReplace,
    GroupStudentsAssign,
    GroupStudentsRemove,
)
from app.services.classes import group_view
from app.services.events import Actor, EventBus
from app.services.schedule_mutation import ScheduleMutationService

router = APIRouter()


@router.post("/groups", response_model=GroupOut, status_code=status.HTTP_201_CREATED)
def create_group(
    payload: GroupCreate,
    db: Session = Depends(get_db),
    events: EventBus = Depends(get_event_bus),
    actor: Actor | None = Depends(get_actor),
) -> GroupOut:
    group = ScheduleMutationService(db, events=events).create_group(
        class_id=payload.class_id,
        name=payload.name,
        schedule_items=payload.schedule_items,
        student_ids=payload.student_ids,
        skip_warning=payload.skip_warning,
        actor=actor,
    )
    return group_view(db, group.id)


@router.get("/groups/{group_id}", response_model=GroupOut)
def get_group(group_id: str, db: Session = Depends(get_db)) -> GroupOut:
    return group_view(db, group_id)


@router.put("/groups/{group_id}/schedule", response_model=GroupOut)
def replace_group_schedule(
    group_id: str,
    payload: GroupScheduleReplace,
    db: Session = Depends(get_db),
    events: EventBus = Depends(get_event_bus),
    actor: Actor | None = Depends(get_actor),
) -> GroupOut:
    ScheduleMutationService(db, events=events).replace_group_schedule(
        group_id,
        payload.schedule_items,
        skip_warning=payload.skip_warning,
        actor=actor,
    )
    return group_view(db, group_id)


@router.post("/groups/{group_id}/students", response_model=BulkOperationResult)
def assign_students(
    group_id: str,
    payload: GroupStudentsAssign,
    db: Session = Depends(get_db),
    events: EventBus = Depends(get_event_bus),
    actor: Actor | None = Depends(get_actor),
) -> BulkOperationResult:
    return ScheduleMutationService(db, events=events).bulk_assign_students(
        group_id,
        payload.student_ids,
        skip_warning=payload.skip_warning,
        actor=actor,
    )


@router.post("/groups/{group_id}/students/remove", response_model=BulkOperationResult)
def remove_students(
    group_id: str,
    payload: GroupStudentsRemove,
    db: Session = Depends(get_db),
) -> BulkOperationResult:
    return ScheduleMutationService(db).remove_students(group_id, payload.student_ids)


@router.delete("/groups/{group_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_group(group_id: str, db: Session = Depends(get_db)) -> Response:
    ScheduleMutationService(db).delete_group(group_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/groups/{group_id}/restore", response_model=GroupOut)
def restore_group(
    group_id: str,
    payload: GroupRestore | None = None,
    db: Session = Depends(get_db),
    events: EventBus = Depends(get_event_bus),
    actor: Actor | None = Depends(get_actor),
) -> GroupOut:
    ScheduleMutationService(db, events=events).restore_group(
        group_id,
        skip_warning=payload.skip_warning if payload else False,
        actor=actor,
    )
    return group_view(db, group_id)
