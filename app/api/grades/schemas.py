import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from app.api.subjects.schemas import SubjectBrief
from app.auth.schemas import UserBrief
from app.core.dates import parse_iso_date


class GradeCreate(BaseModel):
    student_id: int
    subject_id: int
    grade: int = Field(..., ge=1, le=5)
    grade_type: Optional[str] = Field(None, max_length=50)
    date: dt.date
    comment: Optional[str] = None

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, v):
        return parse_iso_date(v)


class GradeUpdate(BaseModel):
    grade: Optional[int] = Field(None, ge=1, le=5)
    grade_type: Optional[str] = Field(None, max_length=50)
    date: Optional[dt.date] = None
    comment: Optional[str] = None

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, v):
        return parse_iso_date(v)


class GradeResponse(BaseModel):
    id: int
    school_id: int
    student_id: int
    subject_id: int
    teacher_id: int
    grade: int
    grade_type: Optional[str] = None
    date: dt.date
    comment: Optional[str] = None
    student: Optional[UserBrief] = None
    subject: Optional[SubjectBrief] = None
    teacher: Optional[UserBrief] = None
    created_at: dt.datetime
    updated_at: dt.datetime

    class Config:
        from_attributes = True


class SubjectAverage(BaseModel):
    subject_id: int
    subject_name: str
    average: float
    count: int


class StudentAverageResponse(BaseModel):
    student_id: int
    overall_average: float
    total_grades: int
    subject_averages: List[SubjectAverage]
