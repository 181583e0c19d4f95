from datetime import time
from typing import Literal

from pydantic import BaseModel, Field

from app.schemas.timetable import PeriodIn


class ConflictCheckRequest(PeriodIn):
    exclude_period_id: str | None = Field(default=None, alias="excludePeriodId", max_length=36)


class ConflictingPeriodOut(BaseModel):
    period_id: str | None = Field(default=None, serialization_alias="periodId")
    timetable_id: str | None = Field(default=None, serialization_alias="timetableId")
    batch_index: int | None = Field(default=None, serialization_alias="batchIndex")
    day_of_week: int = Field(serialization_alias="dayOfWeek")
    start_time: time = Field(serialization_alias="startTime")
    end_time: time = Field(serialization_alias="endTime")
    subject_name: str = Field(serialization_alias="subjectName")
    classroom_name: str = Field(serialization_alias="classroomName")
    teacher_name: str = Field(serialization_alias="teacherName")

    model_config = {"from_attributes": True}


class ConflictCheckOut(BaseModel):
    has_conflict: bool = Field(serialization_alias="hasConflict")
    kind: Literal["TEACHER_CONFLICT", "CLASSROOM_CONFLICT"] | None = None
    message: str | None = None
    existing: ConflictingPeriodOut | None = None
