from __future__ import annotations

from datetime import time

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class PeriodIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    day_of_week: int = Field(alias="dayOfWeek", ge=1, le=7)
    start_time: time = Field(alias="startTime")
    end_time: time = Field(alias="endTime")
    duration_in_minutes: int | None = Field(default=None, alias="durationInMinutes", gt=0, le=240)
    subject_id: str = Field(alias="subjectId", min_length=1, max_length=36)
    classroom_id: str = Field(alias="classroomId", min_length=1, max_length=36)
    # User id of the teacher; resolved to a teacher profile before conflict checking.
    teacher_id: str = Field(alias="teacherId", min_length=1, max_length=36)

    @field_validator("start_time", "end_time")
    @classmethod
    def wall_clock_minutes(cls, value: time) -> time:
        if value.tzinfo is not None:
            raise ValueError("Times are wall-clock values and must not carry a timezone")
        if value.second or value.microsecond:
            raise ValueError("Times must be whole minutes")
        return value

    def describe(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class TimetableCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    term_id: str = Field(alias="termId", min_length=1, max_length=36)
    class_group_id: str | None = Field(default=None, alias="classGroupId", max_length=36)
    class_id: str | None = Field(default=None, alias="classId", max_length=36)
    periods: list[PeriodIn] = Field(default_factory=list, max_length=500)

    @field_validator("class_group_id", "class_id", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @model_validator(mode="after")
    def require_scope(self) -> "TimetableCreate":
        if not self.class_group_id and not self.class_id:
            raise ValueError("A timetable needs a classGroupId, a classId, or both")
        return self


class TimetableReplace(BaseModel):
    periods: list[PeriodIn] = Field(default_factory=list, max_length=500)


class SubjectRef(BaseModel):
    id: str
    name: str
    code: str

    model_config = {"from_attributes": True}


class ClassroomRef(BaseModel):
    id: str
    name: str
    building: str | None = None

    model_config = {"from_attributes": True}


class TeacherRef(BaseModel):
    id: str
    user_id: str = Field(serialization_alias="userId")
    name: str

    model_config = {"from_attributes": True}


class PeriodOut(BaseModel):
    id: str
    timetable_id: str = Field(serialization_alias="timetableId")
    day_of_week: int = Field(serialization_alias="dayOfWeek")
    start_time: time = Field(serialization_alias="startTime")
    end_time: time = Field(serialization_alias="endTime")
    duration_in_minutes: int = Field(serialization_alias="durationInMinutes")
    subject: SubjectRef
    classroom: ClassroomRef
    teacher: TeacherRef

    model_config = {"from_attributes": True}


class TimetableOut(BaseModel):
    id: str
    term_id: str = Field(serialization_alias="termId")
    class_group_id: str | None = Field(default=None, serialization_alias="classGroupId")
    class_id: str | None = Field(default=None, serialization_alias="classId")
    periods: list[PeriodOut] = Field(default_factory=list)

    model_config = {"from_attributes": True}
