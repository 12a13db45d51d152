from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.schemas.schedule import CheckConflictsRequest, CheckConflictsResponse, ValidateScheduleRequest
from app.services.schedule_conflicts import ConflictDetector, SqlScheduleOverlapStore
from app.services.schedule_validation import validate_schedule

router = APIRouter()


@router.post("/schedules/validate")
def validate_schedule_items(payload: ValidateScheduleRequest) -> dict:
    candidates = validate_schedule(payload.items, payload.duration)
    return {
        "valid": True,
        "items": [{"day": slot.day.value, "startTime": slot.start_time} for slot in candidates],
    }


@router.post(
    "/schedules/conflicts",
    response_model=CheckConflictsResponse,
    response_model_by_alias=True,
)
def check_schedule_conflicts(
    payload: CheckConflictsRequest,
    db: Session = Depends(get_db),
) -> CheckConflictsResponse:
    candidates = validate_schedule(payload.items, payload.duration)
    detector = ConflictDetector(SqlScheduleOverlapStore(db))
    return detector.check_conflicts(
        candidates,
        payload.duration,
        teacher_id=payload.subject.teacher_id,
        student_ids=payload.subject.student_ids,
        exclude_group_ids=payload.exclude_group_ids,
    )
