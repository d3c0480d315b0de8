from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from app.auth.schemas import UserBrief


class AnnouncementCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)
    target_role: Optional[str] = Field(None, description="all | teachers | students | parents")
    target_class_id: Optional[int] = None


class AnnouncementUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    content: Optional[str] = Field(None, min_length=1)
    target_role: Optional[str] = None
    target_class_id: Optional[int] = None


class AnnouncementResponse(BaseModel):
    id: int
    school_id: int
    author_id: int
    title: str
    content: str
    target_role: str
    target_class_id: Optional[int] = None
    author: Optional[UserBrief] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
