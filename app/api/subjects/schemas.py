from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.auth.schemas import UserBrief


class SubjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None


class SubjectUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None


class AssignTeachersRequest(BaseModel):
    teacher_ids: List[int] = Field(..., min_length=1)


class SubjectBrief(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True


class SubjectResponse(BaseModel):
    id: int
    school_id: int
    name: str
    description: Optional[str] = None
    teachers: List[UserBrief] = []
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
