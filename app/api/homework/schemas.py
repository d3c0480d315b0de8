import datetime as dt
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from app.api.subjects.schemas import SubjectBrief
from app.auth.schemas import UserBrief
from app.core.dates import parse_iso_date


class HomeworkCreate(BaseModel):
    class_id: int
    subject_id: int
    description: str = Field(..., min_length=1)
    assigned_date: dt.date
    due_date: dt.date

    @field_validator("assigned_date", "due_date", mode="before")
    @classmethod
    def _parse_dates(cls, v, info):
        return parse_iso_date(v, info.field_name)


class HomeworkUpdate(BaseModel):
    description: Optional[str] = Field(None, min_length=1)
    assigned_date: Optional[dt.date] = None
    due_date: Optional[dt.date] = None

    @field_validator("assigned_date", "due_date", mode="before")
    @classmethod
    def _parse_dates(cls, v, info):
        return parse_iso_date(v, info.field_name)


class HomeworkResponse(BaseModel):
    id: int
    school_id: int
    class_id: int
    subject_id: int
    teacher_id: int
    description: str
    assigned_date: dt.date
    due_date: dt.date
    subject: Optional[SubjectBrief] = None
    teacher: Optional[UserBrief] = None
    created_at: dt.datetime
    updated_at: dt.datetime

    class Config:
        from_attributes = True
