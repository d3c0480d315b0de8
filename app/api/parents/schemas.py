from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from app.auth.schemas import UserBrief


class LinkRequest(BaseModel):
    parent_id: int
    student_id: int


class ParentStudentResponse(BaseModel):
    id: int
    school_id: int
    parent_id: int
    student_id: int
    parent: Optional[UserBrief] = None
    student: Optional[UserBrief] = None
    created_at: datetime

    class Config:
        from_attributes = True
