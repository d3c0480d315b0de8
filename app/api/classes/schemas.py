from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.auth.schemas import UserBrief


class ClassCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    year: int = Field(..., ge=1900, le=2200)
    homeroom_teacher_id: Optional[int] = None
    starosta_id: Optional[int] = None


class ClassUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    year: Optional[int] = Field(None, ge=1900, le=2200)
    homeroom_teacher_id: Optional[int] = None
    starosta_id: Optional[int] = None


class AddStudentsRequest(BaseModel):
    student_ids: List[int] = Field(..., min_length=1)


class ClassResponse(BaseModel):
    id: int
    school_id: int
    name: str
    year: int
    homeroom_teacher_id: Optional[int] = None
    starosta_id: Optional[int] = None
    homeroom_teacher: Optional[UserBrief] = None
    starosta: Optional[UserBrief] = None
    students: List[UserBrief] = []
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ClassBrief(BaseModel):
    id: int
    name: str
    year: int

    class Config:
        from_attributes = True
