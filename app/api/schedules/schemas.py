from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from app.api.subjects.schemas import SubjectBrief
from app.auth.schemas import UserBrief


def _strip(v):
    return v.strip() if isinstance(v, str) else v


class ScheduleCreate(BaseModel):
    class_id: int
    subject_id: int
    teacher_id: Optional[int] = None
    day_of_week: str = Field(..., min_length=1, max_length=20)
    lesson_number: int = Field(..., ge=1, le=10)
    start_time: str = Field(..., min_length=1, max_length=5, description="HH:MM")
    end_time: str = Field(..., min_length=1, max_length=5, description="HH:MM")
    room_number: Optional[str] = Field(None, max_length=20)

    @field_validator("day_of_week", "start_time", "end_time", mode="before")
    @classmethod
    def _strip_text(cls, v):
        return _strip(v)


class ScheduleUpdate(BaseModel):
    class_id: Optional[int] = None
    subject_id: Optional[int] = None
    teacher_id: Optional[int] = None
    day_of_week: Optional[str] = Field(None, min_length=1, max_length=20)
    lesson_number: Optional[int] = Field(None, ge=1, le=10)
    start_time: Optional[str] = Field(None, min_length=1, max_length=5)
    end_time: Optional[str] = Field(None, min_length=1, max_length=5)
    room_number: Optional[str] = Field(None, max_length=20)

    @field_validator("day_of_week", "start_time", "end_time", mode="before")
    @classmethod
    def _strip_text(cls, v):
        return _strip(v)


class ScheduleResponse(BaseModel):
    id: int
    school_id: int
    class_id: int
    subject_id: int
    teacher_id: Optional[int] = None
    day_of_week: str
    lesson_number: int
    start_time: str
    end_time: str
    room_number: Optional[str] = None
    subject: Optional[SubjectBrief] = None
    teacher: Optional[UserBrief] = None
    created_at: datetime

    class Config:
        from_attributes = True
