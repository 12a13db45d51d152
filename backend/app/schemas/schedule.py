from __future__ import annotations

import re
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.academic_class import MAX_CLASS_DURATION, MIN_CLASS_DURATION
from app.models.schedule_item import DayOfWeek

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def parse_time_to_minutes(value: str) -> int:
    if not isinstance(value, str) or not TIME_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM 24-hour format")
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def minutes_to_hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


class ScheduleItemIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    day: DayOfWeek
    start_time: str = Field(alias="startTime")

    @field_validator("start_time")
    @classmethod
    def validate_start_time(cls, value: str) -> str:
        parse_time_to_minutes(value)
        return value


class ScheduleItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    day: DayOfWeek
    start_time: str = Field(alias="startTime")


class ConflictEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    day: DayOfWeek
    time_range: str = Field(alias="timeRange")


class ConflictReport(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    subject_id: str = Field(alias="subjectId")
    subject_name: str | None = Field(default=None, alias="subjectName")
    subject_type: Literal["teacher", "student"] = Field(alias="subjectType")
    conflicts: list[ConflictEntry]


class ValidateScheduleRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    items: list[ScheduleItemIn] = Field(min_length=1, max_length=100)
    duration: int = Field(ge=MIN_CLASS_DURATION, le=MAX_CLASS_DURATION)


class ConflictSubject(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    teacher_id: str | None = Field(default=None, alias="teacherId")
    student_ids: list[str] = Field(default_factory=list, alias="studentIds")


class CheckConflictsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    items: list[ScheduleItemIn] = Field(min_length=1, max_length=100)
    duration: int = Field(ge=MIN_CLASS_DURATION, le=MAX_CLASS_DURATION)
    subject: ConflictSubject
    exclude_group_ids: list[str] = Field(default_factory=list, alias="excludeGroupIds")


class CheckConflictsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    teacher: ConflictReport | None = None
    students: list[ConflictReport] = Field(default_factory=list)
