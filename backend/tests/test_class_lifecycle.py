from datetime import datetime, timedelta, timezone

import pytest

from app.core.exceptions import ClassStatusTransitionError, GracePeriodExpiredError, ResourceNotFoundError
from app.models.academic_class import ClassStatus
from app.services.class_lifecycle import (
    ClassLifecycleService,
    class_state_machine,
    get_available_statuses,
)
from app.services.events import CLASS_STATUS_CHANGED, SYSTEM_ACTOR_ID, Actor

T0 = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


class FrozenClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.mark.parametrize(
    "current, expected",
    [
        (ClassStatus.PENDING_TEACHER_APPROVAL, {ClassStatus.NOT_STARTED, ClassStatus.CANCELED}),
        (ClassStatus.NOT_STARTED, {ClassStatus.ACTIVE, ClassStatus.CANCELED}),
        (ClassStatus.ACTIVE, {ClassStatus.PAUSED, ClassStatus.FINISHED, ClassStatus.CANCELED}),
        (ClassStatus.PAUSED, {ClassStatus.ACTIVE, ClassStatus.CANCELED}),
        (ClassStatus.FINISHED, {ClassStatus.ACTIVE}),
        (ClassStatus.CANCELED, {ClassStatus.ACTIVE}),
    ],
)
def test_available_statuses(current, expected):
    assert set(get_available_statuses(current)) == expected


def test_no_status_returns_to_pending_approval():
    for status in ClassStatus:
        if status == ClassStatus.PENDING_TEACHER_APPROVAL:
            continue
        assert not class_state_machine.is_valid_transition(status, ClassStatus.PENDING_TEACHER_APPROVAL)
    assert class_state_machine.is_valid_transition(ClassStatus.PAUSED, ClassStatus.PAUSED)


def test_grace_period_boundary():
    grace = timedelta(hours=24)
    class_state_machine.ensure_transition(
        ClassStatus.FINISHED,
        ClassStatus.ACTIVE,
        last_changed_at=T0,
        now=T0 + timedelta(hours=23, minutes=59),
        grace_period=grace,
    )
    with pytest.raises(GracePeriodExpiredError) as exc_info:
        class_state_machine.ensure_transition(
            ClassStatus.CANCELED,
            ClassStatus.ACTIVE,
            last_changed_at=T0,
            now=T0 + grace,
            grace_period=grace,
        )
    assert exc_info.value.details == {"from": "CANCELED", "grace_period_hours": 24}


def test_change_status_applies_dates_and_publishes(db_session, seed, published):
    center = seed.center(tz="Asia/Tokyo")
    record = seed.academic_class(center, seed.teacher(center), status=ClassStatus.NOT_STARTED)
    service = ClassLifecycleService(db_session, clock=FrozenClock(T0))

    updated = service.change_status(record.id, ClassStatus.ACTIVE, reason="kick-off", actor=Actor("admin-1"))

    assert updated.status == ClassStatus.ACTIVE
    # 12:00 UTC is 21:00 in Tokyo.
    assert updated.start_date == datetime(2026, 3, 2, 21, 0)
    assert len(published) == 1
    event = published[0]
    assert event.name == CLASS_STATUS_CHANGED
    assert (event.old_status, event.new_status, event.reason) == ("NOT_STARTED", "ACTIVE", "kick-off")
    assert event.actor.user_id == "admin-1"
    assert event.tenant_id == center.id


def test_same_status_is_a_no_op(db_session, seed, published):
    center = seed.center()
    record = seed.academic_class(center, seed.teacher(center), status=ClassStatus.PAUSED)

    ClassLifecycleService(db_session).change_status(record.id, ClassStatus.PAUSED)

    assert published == []


def test_invalid_transition_is_rejected(db_session, seed, published):
    center = seed.center()
    record = seed.academic_class(center, seed.teacher(center), status=ClassStatus.ACTIVE)

    with pytest.raises(ClassStatusTransitionError) as exc_info:
        ClassLifecycleService(db_session).change_status(record.id, ClassStatus.PENDING_TEACHER_APPROVAL)

    assert exc_info.value.status_code == 400
    assert exc_info.value.details == {"from": "ACTIVE", "to": "PENDING_TEACHER_APPROVAL"}
    db_session.expire_all()
    assert db_session.get(type(record), record.id).status == ClassStatus.ACTIVE
    assert published == []


def test_reactivation_within_grace_period(db_session, seed, published):
    center = seed.center()
    clock = FrozenClock(T0)
    record = seed.academic_class(center, seed.teacher(center), status=ClassStatus.ACTIVE, status_changed_at=T0)
    service = ClassLifecycleService(db_session, clock=clock)

    finished = service.change_status(record.id, ClassStatus.FINISHED)
    assert finished.end_date == datetime(2026, 3, 2, 12, 0)

    clock.now = T0 + timedelta(hours=23)
    reactivated = service.change_status(record.id, ClassStatus.ACTIVE)
    assert reactivated.status == ClassStatus.ACTIVE
    assert reactivated.end_date is None
    assert published[-1].actor.user_id == SYSTEM_ACTOR_ID


def test_reactivation_after_grace_period_fails(db_session, seed):
    center = seed.center()
    record = seed.academic_class(center, seed.teacher(center), status=ClassStatus.CANCELED, status_changed_at=T0)
    service = ClassLifecycleService(db_session, clock=FrozenClock(T0 + timedelta(hours=24)))

    with pytest.raises(GracePeriodExpiredError):
        service.change_status(record.id, ClassStatus.ACTIVE)


def test_unknown_class(db_session):
    with pytest.raises(ResourceNotFoundError):
        ClassLifecycleService(db_session).change_status("missing", ClassStatus.ACTIVE)
