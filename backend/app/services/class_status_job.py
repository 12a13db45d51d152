from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.db.session import SessionLocal, transaction_scope
from app.models.academic_class import AcademicClass, ClassStatus
from app.services.events import ClassStatusChangedEvent, EventBus, event_bus, system_actor
from app.services.tenants import TenantClock, TenantDirectory

logger = logging.getLogger(__name__)

START_REASON = "Automatic status update: startDate reached"
END_REASON = "Automatic status update: endDate reached"

ENDABLE_STATUSES = (ClassStatus.ACTIVE, ClassStatus.PAUSED)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class StatusJobResult:
    tenants_processed: int = 0
    activated: list[str] = field(default_factory=list)
    finished: list[str] = field(default_factory=list)
    events_failed: int = 0


@dataclass(frozen=True)
class _Change:
    class_id: str
    old_status: ClassStatus
    new_status: ClassStatus
    reason: str


class ClassStatusUpdateJob:
    """Moves classes across their date boundaries for every active center.

    Each center is evaluated against its own local clock and committed on its
    own; events go out after that commit.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        *,
        events: EventBus = event_bus,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.session_factory = session_factory
        self.events = events
        self.clock = clock

    def run_once(self) -> StatusJobResult:
        result = StatusJobResult()
        now = self.clock()
        db = self.session_factory()
        try:
            for tenant in TenantDirectory(db).list_active_tenants():
                try:
                    changes = self._process_tenant(db, tenant, now)
                except Exception:
                    logger.exception("Class status update failed for center %s", tenant.tenant_id)
                    raise
                result.tenants_processed += 1
                for change in changes:
                    if change.new_status == ClassStatus.ACTIVE:
                        result.activated.append(change.class_id)
                    else:
                        result.finished.append(change.class_id)
                    if not self._emit(tenant.tenant_id, change, now):
                        result.events_failed += 1
        finally:
            db.close()

        logger.info(
            "Class status job: %d center(s), %d activated, %d finished",
            result.tenants_processed,
            len(result.activated),
            len(result.finished),
        )
        return result

    def _process_tenant(self, db: Session, tenant: TenantClock, now: datetime) -> list[_Change]:
        local_now = tenant.local_now(now)
        changes: list[_Change] = []
        with transaction_scope(db):
            to_activate = db.execute(
                select(AcademicClass.id).where(
                    AcademicClass.center_id == tenant.tenant_id,
                    AcademicClass.status == ClassStatus.NOT_STARTED,
                    AcademicClass.start_date <= local_now,
                    AcademicClass.deleted_at.is_(None),
                )
            ).scalars().all()
            to_finish = db.execute(
                select(AcademicClass.id, AcademicClass.status).where(
                    AcademicClass.center_id == tenant.tenant_id,
                    AcademicClass.status.in_(ENDABLE_STATUSES),
                    AcademicClass.end_date.is_not(None),
                    AcademicClass.end_date <= local_now,
                    AcademicClass.deleted_at.is_(None),
                )
            ).all()

            activated: list[str] = []
            if to_activate:
                activated = db.execute(
                    update(AcademicClass)
                    .where(
                        AcademicClass.id.in_(to_activate),
                        AcademicClass.status == ClassStatus.NOT_STARTED,
                    )
                    .values(status=ClassStatus.ACTIVE, status_changed_at=now)
                    .returning(AcademicClass.id)
                    .execution_options(synchronize_session=False)
                ).scalars().all()
            finished: list[str] = []
            if to_finish:
                finished = db.execute(
                    update(AcademicClass)
                    .where(
                        AcademicClass.id.in_([class_id for class_id, _ in to_finish]),
                        AcademicClass.status.in_(ENDABLE_STATUSES),
                    )
                    .values(status=ClassStatus.FINISHED, status_changed_at=now)
                    .returning(AcademicClass.id)
                    .execution_options(synchronize_session=False)
                ).scalars().all()

            # Rows whose status moved after the select are left alone.
            previous = dict(to_finish)
            activated_ids, finished_ids = set(activated), set(finished)
            changes.extend(
                _Change(class_id, ClassStatus.NOT_STARTED, ClassStatus.ACTIVE, START_REASON)
                for class_id in to_activate
                if class_id in activated_ids
            )
            changes.extend(
                _Change(class_id, previous[class_id], ClassStatus.FINISHED, END_REASON)
                for class_id, _ in to_finish
                if class_id in finished_ids
            )

        if changes:
            logger.info(
                "Center %s: %d class(es) activated, %d finished at %s local",
                tenant.tenant_id,
                len(activated),
                len(finished),
                local_now.isoformat(timespec="minutes"),
            )
        db.expire_all()
        return changes

    def _emit(self, tenant_id: str, change: _Change, now: datetime) -> bool:
        event = ClassStatusChangedEvent(
            class_id=change.class_id,
            old_status=change.old_status.value,
            new_status=change.new_status.value,
            reason=change.reason,
            actor=system_actor(tenant_id),
            tenant_id=tenant_id,
            occurred_at=now,
        )
        try:
            self.events.publish(event)
        except Exception:
            logger.exception("Failed to emit status change for class %s", change.class_id)
            return False
        return True


async def run_periodically(job: ClassStatusUpdateJob, interval_seconds: int, stop_event: asyncio.Event) -> None:
    logger.info("Class status job scheduled every %d second(s)", interval_seconds)
    while not stop_event.is_set():
        try:
            await asyncio.to_thread(job.run_once)
        except Exception:
            logger.exception("Class status job run failed")
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
        except asyncio.TimeoutError:
            continue
    logger.info("Class status job stopped")
