from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.exceptions import ClassStatusTransitionError, GracePeriodExpiredError, ResourceNotFoundError
from app.db.session import transaction_scope
from app.models.academic_class import AcademicClass, ClassStatus
from app.services.events import Actor, ClassStatusChangedEvent, EventBus, event_bus, publish_committed, system_actor
from app.services.tenants import TenantDirectory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClassTransition:
    from_status: ClassStatus
    to_status: ClassStatus
    description: str


TRANSITIONS: tuple[ClassTransition, ...] = (
    ClassTransition(ClassStatus.PENDING_TEACHER_APPROVAL, ClassStatus.NOT_STARTED, "Teacher approves the class"),
    ClassTransition(ClassStatus.PENDING_TEACHER_APPROVAL, ClassStatus.CANCELED, "Teacher rejects the class"),
    ClassTransition(ClassStatus.NOT_STARTED, ClassStatus.ACTIVE, "Start date reached or manual activation"),
    ClassTransition(ClassStatus.NOT_STARTED, ClassStatus.CANCELED, "Cancel before the class starts"),
    ClassTransition(ClassStatus.ACTIVE, ClassStatus.PAUSED, "Temporarily pause the class"),
    ClassTransition(ClassStatus.ACTIVE, ClassStatus.FINISHED, "End date reached or manual completion"),
    ClassTransition(ClassStatus.ACTIVE, ClassStatus.CANCELED, "Cancel an active class"),
    ClassTransition(ClassStatus.PAUSED, ClassStatus.ACTIVE, "Resume a paused class"),
    ClassTransition(ClassStatus.PAUSED, ClassStatus.CANCELED, "Cancel a paused class"),
    ClassTransition(ClassStatus.FINISHED, ClassStatus.ACTIVE, "Reactivate within the grace period"),
    ClassTransition(ClassStatus.CANCELED, ClassStatus.ACTIVE, "Reactivate within the grace period"),
)

GRACE_PERIOD_SOURCES = frozenset({ClassStatus.FINISHED, ClassStatus.CANCELED})


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ClassStateMachine:
    def __init__(self, transitions: tuple[ClassTransition, ...] = TRANSITIONS) -> None:
        self._targets: dict[ClassStatus, list[ClassStatus]] = {status: [] for status in ClassStatus}
        for transition in transitions:
            self._targets[transition.from_status].append(transition.to_status)

    def get_available_statuses(self, current: ClassStatus) -> list[ClassStatus]:
        return list(self._targets[ClassStatus(current)])

    def is_valid_transition(self, from_status: ClassStatus, to_status: ClassStatus) -> bool:
        if from_status == to_status:
            return True
        return to_status in self._targets[ClassStatus(from_status)]

    @staticmethod
    def requires_grace_period(from_status: ClassStatus, to_status: ClassStatus) -> bool:
        return from_status in GRACE_PERIOD_SOURCES and to_status == ClassStatus.ACTIVE

    def ensure_transition(
        self,
        from_status: ClassStatus,
        to_status: ClassStatus,
        *,
        last_changed_at: datetime | None,
        now: datetime,
        grace_period: timedelta,
    ) -> None:
        if not self.is_valid_transition(from_status, to_status):
            raise ClassStatusTransitionError(from_status.value, to_status.value)
        if not self.requires_grace_period(from_status, to_status):
            return
        changed_at = _as_utc(last_changed_at)
        if changed_at is None or _as_utc(now) - changed_at >= grace_period:
            raise GracePeriodExpiredError(from_status.value, int(grace_period.total_seconds() // 3600))


class_state_machine = ClassStateMachine()


def get_available_statuses(current: ClassStatus) -> list[ClassStatus]:
    return class_state_machine.get_available_statuses(current)


def last_status_change(record: AcademicClass) -> datetime | None:
    """When the status last changed.

    Rows written before ``status_changed_at`` existed fall back to the
    generic audit timestamps.
    """
    return record.status_changed_at or record.updated_at or record.created_at


def apply_status_dates(record: AcademicClass, old_status: ClassStatus, new_status: ClassStatus, local_now: datetime) -> None:
    if new_status == ClassStatus.ACTIVE:
        record.start_date = local_now
    if new_status in (ClassStatus.FINISHED, ClassStatus.CANCELED):
        record.end_date = local_now
    if old_status in GRACE_PERIOD_SOURCES and new_status == ClassStatus.ACTIVE:
        record.end_date = None


class ClassLifecycleService:
    def __init__(
        self,
        db: Session,
        *,
        events: EventBus = event_bus,
        state_machine: ClassStateMachine = class_state_machine,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.db = db
        self.events = events
        self.state_machine = state_machine
        self.clock = clock
        self.grace_period = timedelta(hours=get_settings().status_grace_period_hours)

    def _get_class(self, class_id: str) -> AcademicClass:
        record = self.db.get(AcademicClass, class_id)
        if record is None or record.deleted_at is not None:
            raise ResourceNotFoundError("Class", class_id)
        return record

    def get_available_statuses(self, class_id: str) -> list[ClassStatus]:
        return self.state_machine.get_available_statuses(self._get_class(class_id).status)

    def change_status(
        self,
        class_id: str,
        target: ClassStatus,
        reason: str | None = None,
        actor: Actor | None = None,
    ) -> AcademicClass:
        target = ClassStatus(target)
        now = self.clock()
        with transaction_scope(self.db):
            record = self._get_class(class_id)
            old_status = record.status
            if old_status == target:
                return record

            self.state_machine.ensure_transition(
                old_status,
                target,
                last_changed_at=last_status_change(record),
                now=now,
                grace_period=self.grace_period,
            )
            local_now = TenantDirectory(self.db).clock_for(record.center_id).local_now(now)
            apply_status_dates(record, old_status, target, local_now)
            record.status = target
            record.status_changed_at = now

        logger.info("Class %s status changed %s -> %s", class_id, old_status.value, target.value)
        publish_committed(
            self.events,
            ClassStatusChangedEvent(
                class_id=record.id,
                old_status=old_status.value,
                new_status=target.value,
                reason=reason,
                actor=actor or system_actor(record.center_id),
                tenant_id=record.center_id,
            ),
        )
        return record
