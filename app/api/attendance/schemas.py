import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from app.api.subjects.schemas import SubjectBrief
from app.auth.schemas import UserBrief
from app.core.dates import parse_iso_date
from app.core.enums import AttendanceStatus


class AttendanceRecord(BaseModel):
    student_id: int
    class_id: int
    subject_id: Optional[int] = None
    date: dt.date
    lesson_number: Optional[int] = Field(None, ge=1, le=10)
    status: AttendanceStatus
    comment: Optional[str] = None

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, v):
        return parse_iso_date(v)


class BulkAttendanceRequest(BaseModel):
    records: List[AttendanceRecord] = Field(..., min_length=1)


class AttendanceResponse(BaseModel):
    id: int
    school_id: int
    student_id: int
    class_id: int
    subject_id: Optional[int] = None
    date: dt.date
    lesson_number: Optional[int] = None
    status: str
    comment: Optional[str] = None
    marked_by: int
    student: Optional[UserBrief] = None
    subject: Optional[SubjectBrief] = None
    created_at: dt.datetime
    updated_at: dt.datetime

    class Config:
        from_attributes = True
