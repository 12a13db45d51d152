from app.core.exceptions import (
    AppError,
    BusinessRuleError,
    ClassStatusTransitionError,
    ConfigurationError,
    GracePeriodExpiredError,
    ResourceNotFoundError,
    ScheduleConflictError,
    ScheduleValidationError,
)


def test_status_codes():
    assert ScheduleValidationError("bad").status_code == 422
    assert ScheduleConflictError("clash", conflicts=[], kind="teacher").status_code == 409
    assert ClassStatusTransitionError("ACTIVE", "PENDING_TEACHER_APPROVAL").status_code == 400
    assert GracePeriodExpiredError("FINISHED", 24).status_code == 400
    assert BusinessRuleError("nope").status_code == 400
    assert ResourceNotFoundError("Class", "c1").status_code == 404
    assert ConfigurationError("broken").status_code == 500


def test_conflict_error_carries_reports():
    reports = [{"subjectId": "s1", "subjectType": "student", "conflicts": []}]
    error = ScheduleConflictError("Students have schedule conflicts", conflicts=reports, kind="student")
    assert isinstance(error, AppError)
    assert error.conflicts == reports
    assert error.details == {"kind": "student", "conflicts": reports}
    assert str(error) == "Students have schedule conflicts"


def test_lifecycle_errors_are_distinct():
    assert not isinstance(GracePeriodExpiredError("CANCELED", 24), ClassStatusTransitionError)
    assert ResourceNotFoundError("Group", "g1").details == {}
