from app.models.schedule_item import DayOfWeek
from app.services.conflict_reports import (
    OverlapMatch,
    build_conflict_report,
    build_reports_by_subject,
    describe_reports,
    serialize_reports,
)


def test_report_entries_are_sorted_and_deduplicated():
    matches = [
        OverlapMatch("t1", "g2", DayOfWeek.WED, 600, 60),
        OverlapMatch("t1", "g1", DayOfWeek.MON, 1020, 60),
        OverlapMatch("t1", "g3", DayOfWeek.MON, 1020, 60),
        OverlapMatch("t1", "g1", DayOfWeek.MON, 540, 90),
    ]
    report = build_conflict_report(subject_id="t1", subject_type="teacher", matches=matches, subject_name="Ms. Lane")

    assert [(entry.day, entry.time_range) for entry in report.conflicts] == [
        (DayOfWeek.MON, "09:00-10:30"),
        (DayOfWeek.MON, "17:00-18:00"),
        (DayOfWeek.WED, "10:00-11:00"),
    ]


def test_no_matches_means_no_report():
    assert build_conflict_report(subject_id="t1", subject_type="teacher", matches=[]) is None


def test_reports_follow_requested_subject_order():
    matches = [
        OverlapMatch("s2", "g1", DayOfWeek.TUE, 600, 60),
        OverlapMatch("s1", "g1", DayOfWeek.TUE, 600, 60),
    ]
    reports = build_reports_by_subject(
        subject_type="student",
        matches=matches,
        names={"s1": "Ann"},
        subject_order=["s1", "s3", "s2"],
    )
    assert [report.subject_id for report in reports] == ["s1", "s2"]
    assert reports[0].subject_name == "Ann"
    assert reports[1].subject_name is None


def test_serialized_reports_use_wire_names():
    report = build_conflict_report(
        subject_id="t1",
        subject_type="teacher",
        matches=[OverlapMatch("t1", "g1", DayOfWeek.MON, 1020, 60)],
    )
    assert serialize_reports([report]) == [
        {
            "subjectId": "t1",
            "subjectName": None,
            "subjectType": "teacher",
            "conflicts": [{"day": "Mon", "timeRange": "17:00-18:00"}],
        }
    ]
    assert describe_reports([report]) == "t1 (Mon 17:00-18:00)"
