from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.exceptions import BusinessRuleError, ResourceNotFoundError
from app.db.session import transaction_scope
from app.models.academic_class import AcademicClass
from app.models.center import Center
from app.models.group import Group, GroupStudent
from app.models.schedule_item import DAY_ORDER, ScheduleItem
from app.models.user_profile import ProfileType, UserProfile
from app.schemas.bulk import BulkOperationResult
from app.schemas.classes import ClassCreate, ClassUpdate
from app.schemas.groups import GroupOut
from app.schemas.schedule import ScheduleItemOut
from app.services.bulk import execute_bulk
from app.services.events import Actor, EventBus, event_bus
from app.services.schedule_mutation import ScheduleMutationService
from app.services.tenants import TenantClock, resolve_timezone

logger = logging.getLogger(__name__)


class ClassService:
    def __init__(self, db: Session, *, events: EventBus = event_bus) -> None:
        self.db = db
        self.events = events

    def _find(self, class_id: str, *, include_deleted: bool = False) -> AcademicClass:
        record = self.db.get(AcademicClass, class_id)
        if record is None or (record.deleted_at is not None and not include_deleted):
            raise ResourceNotFoundError("Class", class_id)
        return record

    def get_class(self, class_id: str) -> AcademicClass:
        return self._find(class_id)

    def create_class(self, payload: ClassCreate) -> AcademicClass:
        with transaction_scope(self.db):
            center = self.db.get(Center, payload.center_id)
            if center is None or not center.is_active:
                raise ResourceNotFoundError("Center", payload.center_id)
            teacher = self.db.get(UserProfile, payload.teacher_id)
            if teacher is None or teacher.profile_type != ProfileType.teacher:
                raise BusinessRuleError("teacher_id must reference a teacher profile", details={"teacher_id": payload.teacher_id})
            if not teacher.is_active:
                raise BusinessRuleError("Teacher profile is inactive", details={"teacher_id": payload.teacher_id})

            clock = TenantClock(tenant_id=center.id, timezone=resolve_timezone(center.timezone))
            record = AcademicClass(
                center_id=payload.center_id,
                name=payload.name,
                teacher_id=payload.teacher_id,
                duration=payload.duration,
                status=payload.status,
                start_date=clock.to_local(payload.start_date),
                end_date=clock.to_local(payload.end_date) if payload.end_date else None,
                status_changed_at=datetime.now(timezone.utc),
            )
            self.db.add(record)
        logger.info("Created class %s (%s)", record.id, record.status.value)
        return record

    def update_class(self, class_id: str, payload: ClassUpdate, *, actor: Actor | None = None) -> AcademicClass:
        record = self._find(class_id)
        if payload.duration is not None and payload.duration != record.duration:
            ScheduleMutationService(self.db, events=self.events).change_class_duration(
                class_id,
                payload.duration,
                skip_warning=payload.skip_warning,
                actor=actor,
            )
        if payload.name is not None and payload.name != record.name:
            with transaction_scope(self.db):
                record.name = payload.name
        return record

    def _soft_delete(self, class_id: str) -> None:
        self._find(class_id).deleted_at = datetime.now(timezone.utc)
        self.db.flush()

    def delete_class(self, class_id: str) -> None:
        with transaction_scope(self.db):
            self._soft_delete(class_id)
        logger.info("Soft-deleted class %s", class_id)

    def bulk_delete_classes(self, class_ids: Iterable[str]) -> BulkOperationResult:
        class_ids = list(class_ids)
        if not class_ids:
            raise BusinessRuleError("At least one class id is required")
        with transaction_scope(self.db):
            result = execute_bulk(self.db, class_ids, self._soft_delete)
        logger.info("Bulk delete: %d deleted, %d failed", len(result.succeeded), len(result.failed))
        return result

    def _restore(self, class_id: str) -> None:
        record = self._find(class_id, include_deleted=True)
        if record.deleted_at is None:
            raise BusinessRuleError("Class is not deleted", details={"class_id": class_id})
        record.deleted_at = None
        self.db.flush()

    def restore_class(self, class_id: str) -> AcademicClass:
        with transaction_scope(self.db):
            self._restore(class_id)
        return self._find(class_id)

    def bulk_restore_classes(self, class_ids: Iterable[str]) -> BulkOperationResult:
        class_ids = list(class_ids)
        if not class_ids:
            raise BusinessRuleError("At least one class id is required")
        with transaction_scope(self.db):
            result = execute_bulk(self.db, class_ids, self._restore)
        logger.info("Bulk restore: %d restored, %d failed", len(result.succeeded), len(result.failed))
        return result


def group_view(db: Session, group_id: str) -> GroupOut:
    group = db.get(Group, group_id)
    if group is None or group.deleted_at is not None:
        raise ResourceNotFoundError("Group", group_id)
    items = db.execute(select(ScheduleItem).where(ScheduleItem.group_id == group.id)).scalars()
    students = db.execute(
        select(GroupStudent.student_id)
        .where(GroupStudent.group_id == group.id, GroupStudent.left_at.is_(None))
        .order_by(GroupStudent.joined_at)
    ).scalars()
    return GroupOut(
        id=group.id,
        class_id=group.class_id,
        center_id=group.center_id,
        name=group.name,
        schedule_items=[
            ScheduleItemOut.model_validate(item)
            for item in sorted(items, key=lambda item: (DAY_ORDER[item.day], item.start_minute))
        ],
        student_ids=list(students),
    )
