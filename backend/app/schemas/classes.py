from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.models.academic_class import MAX_CLASS_DURATION, MIN_CLASS_DURATION, ClassStatus

INITIAL_STATUSES = {ClassStatus.PENDING_TEACHER_APPROVAL, ClassStatus.NOT_STARTED}


class ClassCreate(BaseModel):
    center_id: str = Field(min_length=1, max_length=36)
    name: str | None = Field(default=None, max_length=255)
    teacher_id: str = Field(min_length=1, max_length=36)
    duration: int = Field(ge=MIN_CLASS_DURATION, le=MAX_CLASS_DURATION)
    status: ClassStatus = ClassStatus.PENDING_TEACHER_APPROVAL
    start_date: datetime
    end_date: datetime | None = None

    @field_validator("status")
    @classmethod
    def validate_initial_status(cls, value: ClassStatus) -> ClassStatus:
        if value not in INITIAL_STATUSES:
            raise ValueError("Classes must start as PENDING_TEACHER_APPROVAL or NOT_STARTED")
        return value

    @model_validator(mode="after")
    def validate_date_range(self) -> "ClassCreate":
        if self.end_date is None:
            return self
        if (self.start_date.tzinfo is None) != (self.end_date.tzinfo is None):
            raise ValueError("start_date and end_date must both carry a UTC offset or both omit it")
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class ClassUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str | None = Field(default=None, max_length=255)
    duration: int | None = Field(default=None, ge=MIN_CLASS_DURATION, le=MAX_CLASS_DURATION)
    skip_warning: bool = Field(default=False, alias="skipWarning")


class ClassStatusChange(BaseModel):
    status: ClassStatus
    reason: str | None = Field(default=None, max_length=500)


class ClassOut(BaseModel):
    id: str
    center_id: str
    name: str | None = None
    teacher_id: str
    duration: int
    status: ClassStatus
    start_date: datetime
    end_date: datetime | None = None
    status_changed_at: datetime | None = None
    deleted_at: datetime | None = None

    model_config = {"from_attributes": True}


class AvailableStatusesOut(BaseModel):
    current: ClassStatus
    available: list[ClassStatus]


class BulkClassIds(BaseModel):
    class_ids: list[str] = Field(min_length=1, max_length=200)
