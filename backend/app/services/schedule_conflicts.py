from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from app.models.academic_class import AcademicClass
from app.models.group import Group, GroupStudent
from app.models.schedule_item import DayOfWeek, ScheduleItem
from app.models.user_profile import UserProfile
from app.schemas.schedule import CheckConflictsResponse, ConflictReport
from app.services.conflict_reports import OverlapMatch, build_conflict_report, build_reports_by_subject
from app.services.schedule_validation import (
    SlotCandidate,
    intervals_overlap,
    normalize_schedule_items,
    validate_duration,
)

logger = logging.getLogger(__name__)


class ScheduleOverlapStore(Protocol):
    """Read side of the committed schedule used for conflict detection."""

    def find_overlaps_for_teacher(
        self,
        teacher_id: str,
        candidates: Sequence[SlotCandidate],
        duration: int,
        exclude_group_ids: Sequence[str],
    ) -> list[OverlapMatch]: ...

    def find_overlaps_for_students(
        self,
        student_ids: Sequence[str],
        candidates: Sequence[SlotCandidate],
        duration: int,
        exclude_group_ids: Sequence[str],
    ) -> list[OverlapMatch]: ...

    def resolve_names(self, subject_ids: Sequence[str]) -> dict[str, str]: ...


class SqlScheduleOverlapStore:
    """Overlap queries against the relational store.

    All candidates go into one statement as an ``OR`` of per-slot predicates;
    a committed slot's end is its start plus its own class duration.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    @staticmethod
    def _overlap_condition(candidates: Sequence[SlotCandidate], duration: int):
        return or_(
            *(
                and_(
                    ScheduleItem.day == candidate.day,
                    ScheduleItem.start_minute < candidate.start_minute + duration,
                    ScheduleItem.start_minute + AcademicClass.duration > candidate.start_minute,
                )
                for candidate in candidates
            )
        )

    @staticmethod
    def _live_rows(query, exclude_group_ids: Sequence[str]):
        query = query.where(
            AcademicClass.deleted_at.is_(None),
            Group.deleted_at.is_(None),
        )
        if exclude_group_ids:
            query = query.where(Group.id.not_in(list(exclude_group_ids)))
        return query

    def find_overlaps_for_teacher(
        self,
        teacher_id: str,
        candidates: Sequence[SlotCandidate],
        duration: int,
        exclude_group_ids: Sequence[str],
    ) -> list[OverlapMatch]:
        if not candidates:
            return []
        query = (
            select(ScheduleItem.day, ScheduleItem.start_minute, AcademicClass.duration, Group.id)
            .join(Group, Group.id == ScheduleItem.group_id)
            .join(AcademicClass, AcademicClass.id == Group.class_id)
            .where(AcademicClass.teacher_id == teacher_id)
            .where(self._overlap_condition(candidates, duration))
        )
        query = self._live_rows(query, exclude_group_ids)
        return [
            OverlapMatch(
                subject_id=teacher_id,
                group_id=group_id,
                day=DayOfWeek(day),
                start_minute=start_minute,
                duration=class_duration,
            )
            for day, start_minute, class_duration, group_id in self.db.execute(query).all()
        ]

    def find_overlaps_for_students(
        self,
        student_ids: Sequence[str],
        candidates: Sequence[SlotCandidate],
        duration: int,
        exclude_group_ids: Sequence[str],
    ) -> list[OverlapMatch]:
        if not candidates or not student_ids:
            return []
        query = (
            select(
                GroupStudent.student_id,
                ScheduleItem.day,
                ScheduleItem.start_minute,
                AcademicClass.duration,
                Group.id,
            )
            .join(Group, Group.id == ScheduleItem.group_id)
            .join(AcademicClass, AcademicClass.id == Group.class_id)
            .join(GroupStudent, GroupStudent.group_id == Group.id)
            .where(
                GroupStudent.student_id.in_(list(student_ids)),
                GroupStudent.left_at.is_(None),
            )
            .where(self._overlap_condition(candidates, duration))
        )
        query = self._live_rows(query, exclude_group_ids)
        return [
            OverlapMatch(
                subject_id=student_id,
                group_id=group_id,
                day=DayOfWeek(day),
                start_minute=start_minute,
                duration=class_duration,
            )
            for student_id, day, start_minute, class_duration, group_id in self.db.execute(query).all()
        ]

    def resolve_names(self, subject_ids: Sequence[str]) -> dict[str, str]:
        if not subject_ids:
            return {}
        rows = self.db.execute(
            select(UserProfile.id, UserProfile.name).where(UserProfile.id.in_(list(subject_ids)))
        ).all()
        return {profile_id: name for profile_id, name in rows}


@dataclass
class _MemorySlot:
    group_id: str
    teacher_id: str
    day: DayOfWeek
    start_minute: int
    duration: int


@dataclass
class InMemoryScheduleOverlapStore:
    """Store backed by plain lists, used where no database is wanted."""

    slots: list[_MemorySlot] = field(default_factory=list)
    enrollments: dict[str, set[str]] = field(default_factory=lambda: defaultdict(set))
    names: dict[str, str] = field(default_factory=dict)

    def add_group(
        self,
        *,
        group_id: str,
        teacher_id: str,
        duration: int,
        items: Iterable[Any],
        student_ids: Iterable[str] = (),
    ) -> None:
        for candidate in normalize_schedule_items(items):
            self.slots.append(
                _MemorySlot(
                    group_id=group_id,
                    teacher_id=teacher_id,
                    day=candidate.day,
                    start_minute=candidate.start_minute,
                    duration=duration,
                )
            )
        self.enrollments[group_id].update(student_ids)

    def _matching_slots(
        self,
        candidates: Sequence[SlotCandidate],
        duration: int,
        exclude_group_ids: Sequence[str],
    ) -> Iterable[_MemorySlot]:
        excluded = set(exclude_group_ids)
        for slot in self.slots:
            if slot.group_id in excluded:
                continue
            for candidate in candidates:
                if candidate.day != slot.day:
                    continue
                if intervals_overlap(
                    slot.start_minute,
                    slot.start_minute + slot.duration,
                    candidate.start_minute,
                    candidate.start_minute + duration,
                ):
                    yield slot
                    break

    def find_overlaps_for_teacher(self, teacher_id, candidates, duration, exclude_group_ids):
        return [
            OverlapMatch(teacher_id, slot.group_id, slot.day, slot.start_minute, slot.duration)
            for slot in self._matching_slots(candidates, duration, exclude_group_ids)
            if slot.teacher_id == teacher_id
        ]

    def find_overlaps_for_students(self, student_ids, candidates, duration, exclude_group_ids):
        wanted = set(student_ids)
        matches: list[OverlapMatch] = []
        for slot in self._matching_slots(candidates, duration, exclude_group_ids):
            for student_id in sorted(self.enrollments.get(slot.group_id, set()) & wanted):
                matches.append(OverlapMatch(student_id, slot.group_id, slot.day, slot.start_minute, slot.duration))
        return matches

    def resolve_names(self, subject_ids):
        return {subject_id: self.names[subject_id] for subject_id in subject_ids if subject_id in self.names}


class ConflictDetector:
    def __init__(self, store: ScheduleOverlapStore) -> None:
        self.store = store

    def find_teacher_conflicts(
        self,
        teacher_id: str,
        candidate_items: Iterable[Any],
        duration: int,
        exclude_group_ids: Iterable[str] = (),
    ) -> ConflictReport | None:
        candidates = normalize_schedule_items(candidate_items)
        duration = validate_duration(duration)
        matches = self.store.find_overlaps_for_teacher(
            teacher_id, candidates, duration, list(dict.fromkeys(exclude_group_ids))
        )
        if not matches:
            return None
        names = self.store.resolve_names([teacher_id])
        logger.debug("Teacher %s overlaps %d committed slot(s)", teacher_id, len(matches))
        return build_conflict_report(
            subject_id=teacher_id,
            subject_type="teacher",
            matches=matches,
            subject_name=names.get(teacher_id),
        )

    def find_student_conflicts(
        self,
        student_ids: Iterable[str],
        candidate_items: Iterable[Any],
        duration: int,
        exclude_group_ids: Iterable[str] = (),
    ) -> list[ConflictReport]:
        requested = [student_id for student_id in dict.fromkeys(student_ids) if student_id]
        if not requested:
            return []
        candidates = normalize_schedule_items(candidate_items)
        duration = validate_duration(duration)
        matches = self.store.find_overlaps_for_students(
            requested, candidates, duration, list(dict.fromkeys(exclude_group_ids))
        )
        if not matches:
            return []
        conflicted = list(dict.fromkeys(match.subject_id for match in matches))
        names = self.store.resolve_names(conflicted)
        return build_reports_by_subject(
            subject_type="student",
            matches=matches,
            names=names,
            subject_order=[student_id for student_id in requested if student_id in set(conflicted)],
        )

    def check_conflicts(
        self,
        candidate_items: Iterable[Any],
        duration: int,
        *,
        teacher_id: str | None = None,
        student_ids: Iterable[str] = (),
        exclude_group_ids: Iterable[str] = (),
    ) -> CheckConflictsResponse:
        candidate_items = list(candidate_items)
        exclude_group_ids = list(exclude_group_ids)
        teacher_report = None
        if teacher_id:
            teacher_report = self.find_teacher_conflicts(teacher_id, candidate_items, duration, exclude_group_ids)
        student_reports = self.find_student_conflicts(student_ids, candidate_items, duration, exclude_group_ids)
        return CheckConflictsResponse(teacher=teacher_report, students=student_reports)
