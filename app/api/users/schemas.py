from typing import Optional

from pydantic import BaseModel, Field, field_validator

from app.auth.schemas import validate_email
from app.core.enums import Role


class UserUpdate(BaseModel):
    """Profile fields anyone may edit on themselves; role, admin_title and teacher_subject are admin-only."""

    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    middle_name: Optional[str] = Field(None, max_length=100)
    email: Optional[str] = Field(None, max_length=255)
    avatar_url: Optional[str] = Field(None, max_length=500)
    role: Optional[Role] = None
    admin_title: Optional[str] = Field(None, max_length=100)
    teacher_subject: Optional[str] = Field(None, max_length=100)

    @field_validator("email")
    @classmethod
    def _email(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return validate_email(v)


ADMIN_ONLY_FIELDS = ("role", "admin_title", "teacher_subject")
