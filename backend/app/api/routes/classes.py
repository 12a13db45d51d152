from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from app.api.deps import get_actor, get_db, get_event_bus
from app.schemas.bulk import BulkOperationResult
from app.schemas.classes import (
    AvailableStatusesOut,
    BulkClassIds,
    ClassCreate,
    ClassOut,
    ClassStatusChange,
    ClassUpdate,
)
from app.services.class_lifecycle import ClassLifecycleService
from app.services.classes import ClassService
from app.services.events import Actor, EventBus

router = APIRouter()


@router.post("/classes", response_model=ClassOut, status_code=status.HTTP_201_CREATED)
def create_class(
    payload: ClassCreate,
    db: Session = Depends(get_db),
    events: EventBus = Depends(get_event_bus),
) -> ClassOut:
    return ClassService(db, events=events).create_class(payload)


@router.post("/classes/bulk-restore", response_model=BulkOperationResult)
def bulk_restore_classes(
    payload: BulkClassIds,
    db: Session = Depends(get_db),
    events: EventBus = Depends(get_event_bus),
) -> BulkOperationResult:
    return ClassService(db, events=events).bulk_restore_classes(payload.class_ids)


@router.post("/classes/bulk-delete", response_model=BulkOperationResult)
def bulk_delete_classes(payload: BulkClassIds, db: Session = Depends(get_db)) -> BulkOperationResult:
    return ClassService(db).bulk_delete_classes(payload.class_ids)


@router.get("/classes/{class_id}", response_model=ClassOut)
def get_class(class_id: str, db: Session = Depends(get_db)) -> ClassOut:
    return ClassService(db).get_class(class_id)


@router.patch("/classes/{class_id}", response_model=ClassOut)
def update_class(
    class_id: str,
    payload: ClassUpdate,
    db: Session = Depends(get_db),
    events: EventBus = Depends(get_event_bus),
    actor: Actor | None = Depends(get_actor),
) -> ClassOut:
    return ClassService(db, events=events).update_class(class_id, payload, actor=actor)


@router.delete("/classes/{class_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_class(class_id: str, db: Session = Depends(get_db)) -> Response:
    ClassService(db).delete_class(class_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/classes/{class_id}/available-statuses", response_model=AvailableStatusesOut)
def get_available_statuses(class_id: str, db: Session = Depends(get_db)) -> AvailableStatusesOut:
    service = ClassLifecycleService(db)
    record = ClassService(db).get_class(class_id)
    return AvailableStatusesOut(current=record.status, available=service.get_available_statuses(class_id))


@router.post("/classes/{class_id}/status", response_model=ClassOut)
def change_class_status(
    class_id: str,
    payload: ClassStatusChange,
    db: Session = Depends(get_db),
    events: EventBus = Depends(get_event_bus),
    actor: Actor | None = Depends(get_actor),
) -> ClassOut:
    return ClassLifecycleService(db, events=events).change_status(
        class_id,
        payload.status,
        reason=payload.reason,
        actor=actor,
    )
