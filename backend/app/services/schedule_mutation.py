from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.core.exceptions import BusinessRuleError, ResourceNotFoundError, ScheduleConflictError
from app.db.session import transaction_scope
from app.models.academic_class import AcademicClass, ClassStatus
from app.models.group import Group, GroupStudent
from app.models.schedule_item import DAY_ORDER, ScheduleItem
from app.schemas.bulk import BulkOperationResult
from app.schemas.schedule import ConflictReport
from app.services.bulk import execute_bulk
from app.services.conflict_reports import describe_reports, serialize_reports
from app.services.events import (
    Actor,
    EventBus,
    ScheduleConflictAdvisoryEvent,
    event_bus,
    publish_committed,
    system_actor,
)
from app.services.schedule_conflicts import ConflictDetector, SqlScheduleOverlapStore
from app.services.schedule_validation import SlotCandidate, validate_schedule

logger = logging.getLogger(__name__)

CLOSED_CLASS_STATUSES = frozenset({ClassStatus.FINISHED, ClassStatus.CANCELED})


class ScheduleMutationService:
    """Validate-then-write orchestration for everything that moves a slot.

    Each public mutation runs validation, teacher conflicts, then student
    conflicts inside one transaction scope and only writes when all pass.
    """

    def __init__(
        self,
        db: Session,
        *,
        detector: ConflictDetector | None = None,
        events: EventBus = event_bus,
    ) -> None:
        self.db = db
        self.detector = detector or ConflictDetector(SqlScheduleOverlapStore(db))
        self.events = events
        self._advisories: list[ScheduleConflictAdvisoryEvent] = []

    # -- lookups -----------------------------------------------------------

    def _get_class(self, class_id: str) -> AcademicClass:
        record = self.db.get(AcademicClass, class_id)
        if record is None or record.deleted_at is not None:
            raise ResourceNotFoundError("Class", class_id)
        return record

    def _get_group(self, group_id: str) -> Group:
        group = self.db.get(Group, group_id)
        if group is None or group.deleted_at is not None:
            raise ResourceNotFoundError("Group", group_id)
        return group

    def _live_groups(self, class_id: str) -> list[Group]:
        return list(
            self.db.execute(
                select(Group).where(Group.class_id == class_id, Group.deleted_at.is_(None)).order_by(Group.created_at)
            ).scalars()
        )

    def _group_items(self, group_ids: Sequence[str]) -> list[ScheduleItem]:
        if not group_ids:
            return []
        items = self.db.execute(select(ScheduleItem).where(ScheduleItem.group_id.in_(list(group_ids)))).scalars()
        return sorted(items, key=lambda item: (DAY_ORDER[item.day], item.start_minute))

    def _enrolled_student_ids(self, group_ids: Sequence[str]) -> list[str]:
        if not group_ids:
            return []
        rows = self.db.execute(
            select(GroupStudent.student_id).where(
                GroupStudent.group_id.in_(list(group_ids)),
                GroupStudent.left_at.is_(None),
            )
        ).scalars()
        return list(dict.fromkeys(rows))

    # -- checks ------------------------------------------------------------

    def validate_and_check(
        self,
        *,
        items: Iterable[Any],
        duration: int,
        teacher_id: str,
        student_ids: Iterable[str] = (),
        exclude_group_ids: Iterable[str] = (),
        skip_warning: bool = False,
    ) -> tuple[list[SlotCandidate], list[ConflictReport]]:
        """Run the blocking checks and return normalized slots.

        The second element holds student reports that ``skip_warning``
        downgraded; they never block the caller.
        """
        candidates = validate_schedule(items, duration)
        exclude_group_ids = list(exclude_group_ids)

        teacher_report = self.detector.find_teacher_conflicts(teacher_id, candidates, duration, exclude_group_ids)
        if teacher_report is not None:
            raise ScheduleConflictError(
                f"Teacher has a schedule conflict: {describe_reports([teacher_report])}",
                conflicts=serialize_reports([teacher_report]),
                kind="teacher",
            )

        student_reports = self._check_students(student_ids, candidates, duration, exclude_group_ids, skip_warning)
        return candidates, student_reports

    def _check_students(
        self,
        student_ids: Iterable[str],
        candidates: Sequence[SlotCandidate],
        duration: int,
        exclude_group_ids: Sequence[str],
        skip_warning: bool,
    ) -> list[ConflictReport]:
        reports = self.detector.find_student_conflicts(student_ids, candidates, duration, exclude_group_ids)
        if reports and not skip_warning:
            raise ScheduleConflictError(
                f"Students have schedule conflicts: {describe_reports(reports)}",
                conflicts=serialize_reports(reports),
                kind="student",
            )
        if reports:
            logger.debug("Skipping %d student conflict report(s) on request", len(reports))
        return reports

    def _queue_advisory(
        self,
        reports: list[ConflictReport],
        *,
        academic_class: AcademicClass,
        group_id: str | None,
        actor: Actor | None,
    ) -> None:
        if not reports:
            return
        self._advisories.append(
            ScheduleConflictAdvisoryEvent(
                group_id=group_id,
                class_id=academic_class.id,
                conflicts=serialize_reports(reports),
                actor=actor or system_actor(academic_class.center_id),
                tenant_id=academic_class.center_id,
            )
        )

    def _flush_advisories(self) -> None:
        pending, self._advisories = self._advisories, []
        for event in pending:
            publish_committed(self.events, event)

    # -- writes ------------------------------------------------------------

    def _write_schedule(self, group: Group, candidates: Sequence[SlotCandidate]) -> list[ScheduleItem]:
        self.db.execute(delete(ScheduleItem).where(ScheduleItem.group_id == group.id))
        items = [
            ScheduleItem(
                group_id=group.id,
                class_id=group.class_id,
                day=candidate.day,
                start_minute=candidate.start_minute,
            )
            for candidate in candidates
        ]
        self.db.add_all(items)
        self.db.flush()
        return items

    def _ensure_enrollable(self, academic_class: AcademicClass) -> None:
        if academic_class.status in CLOSED_CLASS_STATUSES:
            raise BusinessRuleError(
                f"Class is {academic_class.status.value} and cannot be modified",
                details={"class_id": academic_class.id, "status": academic_class.status.value},
            )

    def _active_group_of(self, class_id: str, student_id: str, *, exclude_group_id: str | None = None) -> str | None:
        query = (
            select(GroupStudent.group_id)
            .join(Group, Group.id == GroupStudent.group_id)
            .where(
                GroupStudent.class_id == class_id,
                GroupStudent.student_id == student_id,
                GroupStudent.left_at.is_(None),
                Group.deleted_at.is_(None),
            )
        )
        if exclude_group_id is not None:
            query = query.where(GroupStudent.group_id != exclude_group_id)
        return self.db.execute(query).scalars().first()

    def _enroll(self, group: Group, student_id: str) -> GroupStudent:
        existing = self._active_group_of(group.class_id, student_id)
        if existing is not None:
            raise BusinessRuleError(
                "Student is already assigned to a group of this class",
                details={"student_id": student_id, "group_id": existing},
            )
        enrollment = GroupStudent(
            group_id=group.id,
            class_id=group.class_id,
            student_id=student_id,
            joined_at=datetime.now(timezone.utc),
        )
        self.db.add(enrollment)
        self.db.flush()
        return enrollment

    # -- operations --------------------------------------------------------

    def create_group(
        self,
        *,
        class_id: str,
        name: str,
        schedule_items: Iterable[Any],
        student_ids: Iterable[str] = (),
        skip_warning: bool = False,
        actor: Actor | None = None,
    ) -> Group:
        self._advisories.clear()
        student_ids = list(dict.fromkeys(student_ids))
        with transaction_scope(self.db):
            academic_class = self._get_class(class_id)
            self._ensure_enrollable(academic_class)
            candidates, advisories = self.validate_and_check(
                items=schedule_items,
                duration=academic_class.duration,
                teacher_id=academic_class.teacher_id,
                student_ids=student_ids,
                skip_warning=skip_warning,
            )
            group = Group(class_id=academic_class.id, center_id=academic_class.center_id, name=name)
            self.db.add(group)
            self.db.flush()
            self._write_schedule(group, candidates)
            for student_id in student_ids:
                self._enroll(group, student_id)
            self._queue_advisory(advisories, academic_class=academic_class, group_id=group.id, actor=actor)

        logger.info("Created group %s for class %s with %d slot(s)", group.id, class_id, len(candidates))
        self._flush_advisories()
        return group

    def replace_group_schedule(
        self,
        group_id: str,
        items: Iterable[Any],
        *,
        skip_warning: bool = False,
        actor: Actor | None = None,
    ) -> list[ScheduleItem]:
        self._advisories.clear()
        with transaction_scope(self.db):
            group = self._get_group(group_id)
            academic_class = self._get_class(group.class_id)
            candidates, advisories = self.validate_and_check(
                items=items,
                duration=academic_class.duration,
                teacher_id=academic_class.teacher_id,
                student_ids=self._enrolled_student_ids([group.id]),
                exclude_group_ids=[group.id],
                skip_warning=skip_warning,
            )
            written = self._write_schedule(group, candidates)
            self._queue_advisory(advisories, academic_class=academic_class, group_id=group.id, actor=actor)

        logger.info("Replaced schedule of group %s with %d slot(s)", group_id, len(written))
        self._flush_advisories()
        return written

    def change_class_duration(
        self,
        class_id: str,
        duration: int,
        *,
        skip_warning: bool = False,
        actor: Actor | None = None,
    ) -> AcademicClass:
        self._advisories.clear()
        with transaction_scope(self.db):
            academic_class = self._get_class(class_id)
            if duration == academic_class.duration:
                return academic_class

            group_ids = [group.id for group in self._live_groups(class_id)]
            items = self._group_items(group_ids)
            if items:
                # Slots of every group move together; they are checked as one set.
                _, advisories = self.validate_and_check(
                    items=[SlotCandidate(item.day, item.start_minute) for item in items],
                    duration=duration,
                    teacher_id=academic_class.teacher_id,
                    student_ids=self._enrolled_student_ids(group_ids),
                    exclude_group_ids=group_ids,
                    skip_warning=skip_warning,
                )
                self._queue_advisory(advisories, academic_class=academic_class, group_id=None, actor=actor)
            academic_class.duration = duration

        logger.info("Class %s duration changed to %d minute(s)", class_id, duration)
        self._flush_advisories()
        return academic_class

    def _assign_student(self, group_id: str, student_id: str, skip_warning: bool, actor: Actor | None) -> None:
        group = self._get_group(group_id)
        academic_class = self._get_class(group.class_id)
        self._ensure_enrollable(academic_class)
        # Only the incoming student is checked against the stored slots.
        candidates = [SlotCandidate(item.day, item.start_minute) for item in self._group_items([group.id])]
        advisories: list[ConflictReport] = []
        if candidates:
            advisories = self._check_students(
                [student_id], candidates, academic_class.duration, [group.id], skip_warning
            )
        self._enroll(group, student_id)
        self._queue_advisory(advisories, academic_class=academic_class, group_id=group.id, actor=actor)

    def assign_student(
        self,
        group_id: str,
        student_id: str,
        *,
        skip_warning: bool = False,
        actor: Actor | None = None,
    ) -> None:
        self._advisories.clear()
        with transaction_scope(self.db):
            self._assign_student(group_id, student_id, skip_warning, actor)
        self._flush_advisories()

    def bulk_assign_students(
        self,
        group_id: str,
        student_ids: Iterable[str],
        *,
        skip_warning: bool = False,
        actor: Actor | None = None,
    ) -> BulkOperationResult:
        student_ids = list(student_ids)
        if not student_ids:
            raise BusinessRuleError("At least one student is required")
        self._advisories.clear()
        with transaction_scope(self.db):
            self._get_group(group_id)
            result = execute_bulk(
                self.db,
                student_ids,
                lambda student_id: self._assign_student(group_id, student_id, skip_warning, actor),
            )
        logger.info(
            "Bulk assigned students to group %s: %d succeeded, %d failed",
            group_id,
            len(result.succeeded),
            len(result.failed),
        )
        self._flush_advisories()
        return result

    def _remove_student(self, group: Group, student_id: str, left_at: datetime) -> None:
        enrollment = self.db.execute(
            select(GroupStudent).where(
                GroupStudent.group_id == group.id,
                GroupStudent.student_id == student_id,
                GroupStudent.left_at.is_(None),
            )
        ).scalars().first()
        if enrollment is None:
            raise BusinessRuleError(
                "Student is not assigned to this group",
                details={"student_id": student_id, "group_id": group.id},
            )
        enrollment.left_at = left_at
        self.db.flush()

    def remove_students(self, group_id: str, student_ids: Iterable[str]) -> BulkOperationResult:
        """End the active membership of each student; history rows are kept."""
        student_ids = list(student_ids)
        if not student_ids:
            raise BusinessRuleError("At least one student is required")
        left_at = datetime.now(timezone.utc)
        with transaction_scope(self.db):
            group = self._get_group(group_id)
            result = execute_bulk(
                self.db,
                student_ids,
                lambda student_id: self._remove_student(group, student_id, left_at),
            )
        logger.info(
            "Removed students from group %s: %d succeeded, %d failed",
            group_id,
            len(result.succeeded),
            len(result.failed),
        )
        return result

    def delete_group(self, group_id: str) -> None:
        with transaction_scope(self.db):
            self._get_group(group_id).deleted_at = datetime.now(timezone.utc)
        logger.info("Soft-deleted group %s", group_id)

    def restore_group(
        self,
        group_id: str,
        *,
        skip_warning: bool = False,
        actor: Actor | None = None,
    ) -> Group:
        """Bring a soft-deleted group back once its slots fit again.

        The stored slots go through the same teacher and student checks as a
        fresh schedule.
        """
        self._advisories.clear()
        with transaction_scope(self.db):
            group = self.db.get(Group, group_id)
            if group is None:
                raise ResourceNotFoundError("Group", group_id)
            if group.deleted_at is None:
                raise BusinessRuleError("Group is not deleted", details={"group_id": group_id})
            academic_class = self._get_class(group.class_id)

            student_ids = self._enrolled_student_ids([group.id])
            for student_id in student_ids:
                other = self._active_group_of(group.class_id, student_id, exclude_group_id=group.id)
                if other is not None:
                    raise BusinessRuleError(
                        "Student is already assigned to another group of this class",
                        details={"student_id": student_id, "group_id": other},
                    )

            advisories: list[ConflictReport] = []
            items = self._group_items([group.id])
            if items:
                _, advisories = self.validate_and_check(
                    items=[SlotCandidate(item.day, item.start_minute) for item in items],
                    duration=academic_class.duration,
                    teacher_id=academic_class.teacher_id,
                    student_ids=student_ids,
                    exclude_group_ids=[group.id],
                    skip_warning=skip_warning,
                )
            group.deleted_at = None
            self._queue_advisory(advisories, academic_class=academic_class, group_id=group.id, actor=actor)

        logger.info("Restored group %s", group_id)
        self._flush_advisories()
        return group
