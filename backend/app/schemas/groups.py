from pydantic import BaseModel, ConfigDict, Field

from app.schemas.schedule import ScheduleItemIn, ScheduleItemOut


class GroupCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    class_id: str = Field(min_length=1, max_length=36, alias="classId")
    name: str = Field(min_length=1, max_length=200)
    schedule_items: list[ScheduleItemIn] = Field(min_length=1, max_length=100, alias="scheduleItems")
    student_ids: list[str] = Field(default_factory=list, alias="studentIds")
    skip_warning: bool = Field(default=False, alias="skipWarning")


class GroupScheduleReplace(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    schedule_items: list[ScheduleItemIn] = Field(min_length=1, max_length=100, alias="scheduleItems")
    skip_warning: bool = Field(default=False, alias="skipWarning")


class GroupStudentsAssign(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    student_ids: list[str] = Field(min_length=1, max_length=200, alias="studentIds")
    skip_warning: bool = Field(default=False, alias="skipWarning")


class GroupStudentsRemove(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    student_ids: list[str] = Field(min_length=1, max_length=200, alias="studentIds")


class GroupRestore(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    skip_warning: bool = Field(default=False, alias="skipWarning")


class GroupOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    class_id: str
    center_id: str
    name: str
    schedule_items: list[ScheduleItemOut] = Field(default_factory=list)
    student_ids: list[str] = Field(default_factory=list)
