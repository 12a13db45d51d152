from datetime import datetime, timezone

import pytest

from app.core.exceptions import ScheduleValidationError
from app.models.schedule_item import DayOfWeek
from app.services.schedule_conflicts import (
    ConflictDetector,
    InMemoryScheduleOverlapStore,
    SqlScheduleOverlapStore,
)


@pytest.fixture
def memory_store():
    store = InMemoryScheduleOverlapStore(names={"t1": "Ms. Lane", "s1": "Ann", "s2": "Ben"})
    store.add_group(
        group_id="g1",
        teacher_id="t1",
        duration=60,
        items=[{"day": "Mon", "startTime": "17:00"}, {"day": "Thu", "startTime": "09:00"}],
        student_ids=["s1"],
    )
    store.add_group(
        group_id="g2",
        teacher_id="t2",
        duration=90,
        items=[{"day": "Mon", "startTime": "16:00"}],
        student_ids=["s2"],
    )
    return store


def test_teacher_conflict_reports_committed_slot_range(memory_store):
    detector = ConflictDetector(memory_store)
    report = detector.find_teacher_conflicts("t1", [{"day": "Mon", "startTime": "17:30"}], 60)

    assert report.subject_id == "t1"
    assert report.subject_name == "Ms. Lane"
    assert report.subject_type == "teacher"
    assert [(entry.day, entry.time_range) for entry in report.conflicts] == [(DayOfWeek.MON, "17:00-18:00")]


def test_touching_boundary_is_not_a_conflict(memory_store):
    detector = ConflictDetector(memory_store)
    assert detector.find_teacher_conflicts("t1", [{"day": "Mon", "startTime": "18:00"}], 60) is None
    assert detector.find_teacher_conflicts("t1", [{"day": "Mon", "startTime": "16:00"}], 60) is None


def test_committed_slot_uses_its_own_class_duration(memory_store):
    detector = ConflictDetector(memory_store)
    # g2 runs 16:00-17:30, so a 17:15 candidate collides although g2 starts earlier.
    reports = detector.find_student_conflicts(["s2"], [{"day": "Mon", "startTime": "17:15"}], 30)
    assert [(report.subject_id, report.conflicts[0].time_range) for report in reports] == [("s2", "16:00-17:30")]


def test_excluded_group_is_ignored(memory_store):
    detector = ConflictDetector(memory_store)
    report = detector.find_teacher_conflicts(
        "t1",
        [{"day": "Mon", "startTime": "17:00"}],
        60,
        exclude_group_ids=["g1"],
    )
    assert report is None


def test_student_reports_follow_requested_order(memory_store):
    detector = ConflictDetector(memory_store)
    reports = detector.find_student_conflicts(["s2", "s1", "s3"], [{"day": "Mon", "startTime": "17:00"}], 60)
    assert [report.subject_id for report in reports] == ["s2", "s1"]
    assert [report.subject_name for report in reports] == ["Ben", "Ann"]


def test_check_conflicts_combines_teacher_and_students(memory_store):
    detector = ConflictDetector(memory_store)
    response = detector.check_conflicts(
        [{"day": "Thu", "startTime": "09:30"}],
        30,
        teacher_id="t1",
        student_ids=["s1", "s2"],
    )
    assert response.teacher.conflicts[0].time_range == "09:00-10:00"
    assert [report.subject_id for report in response.students] == ["s1"]


def test_detector_rejects_malformed_candidates(memory_store):
    detector = ConflictDetector(memory_store)
    with pytest.raises(ScheduleValidationError):
        detector.find_teacher_conflicts("t1", [{"day": "Funday", "startTime": "09:00"}], 60)


def test_sql_store_finds_teacher_and_student_overlaps(db_session, seed):
    center = seed.center()
    teacher = seed.teacher(center, "Ms. Lane")
    student = seed.profile(center, "Ann")
    other = seed.profile(center, "Ben")
    algebra = seed.academic_class(center, teacher, duration=60)
    seed.group(algebra, slots=[("Mon", "17:00")], students=[student])

    detector = ConflictDetector(SqlScheduleOverlapStore(db_session))
    response = detector.check_conflicts(
        [{"day": "Mon", "startTime": "17:30"}],
        60,
        teacher_id=teacher.id,
        student_ids=[other.id, student.id],
    )

    assert response.teacher.subject_name == "Ms. Lane"
    assert response.teacher.conflicts[0].time_range == "17:00-18:00"
    assert [report.subject_id for report in response.students] == [student.id]
    assert response.students[0].subject_name == "Ann"


def test_sql_store_skips_deleted_rows_and_departed_students(db_session, seed):
    center = seed.center()
    teacher = seed.teacher(center)
    student = seed.profile(center, "Ann")
    algebra = seed.academic_class(center, teacher, duration=60)
    group = seed.group(algebra, slots=[("Tue", "10:00")], students=[student])
    removed = seed.academic_class(center, teacher, duration=60, name="Removed")
    seed.group(removed, slots=[("Wed", "10:00")])

    removed.deleted_at = datetime.now(timezone.utc)
    db_session.commit()

    detector = ConflictDetector(SqlScheduleOverlapStore(db_session))
    assert detector.find_teacher_conflicts(teacher.id, [{"day": "Wed", "startTime": "10:00"}], 60) is None
    assert detector.find_teacher_conflicts(teacher.id, [{"day": "Tue", "startTime": "10:00"}], 60, [group.id]) is None

    from app.models.group import GroupStudent

    enrollment = db_session.query(GroupStudent).filter_by(student_id=student.id).one()
    enrollment.left_at = datetime.now(timezone.utc)
    db_session.commit()
    assert detector.find_student_conflicts([student.id], [{"day": "Tue", "startTime": "10:00"}], 60) == []
