from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from app.core.enums import Role
from app.core.tenancy import TenantScope


class CurrentUser(BaseModel):
    """Request context resolved from the bearer token."""

    id: int
    school_id: int
    role: Role

    @property
    def scope(self) -> TenantScope:
        return TenantScope(self.school_id)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


def validate_email(value: str) -> str:
    value = value.strip()
    local, sep, domain = value.partition("@")
    if not sep or not local or not domain:
        raise ValueError("invalid email address")
    return value


class RegisterRequest(BaseModel):
    school_id: Optional[int] = None
    username: str = Field(..., min_length=1, max_length=50)
    email: str = Field(..., max_length=255)
    password: str = Field(..., min_length=1)
    role: Role
    first_name: str = ""
    last_name: str = ""
    middle_name: Optional[str] = None
    teacher_subject: Optional[str] = None
    admin_title: Optional[str] = None

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return validate_email(v)


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class ChangePasswordRequest(BaseModel):
    old_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6)


class UserResponse(BaseModel):
    id: int
    school_id: int
    username: str
    email: str
    role: str
    first_name: str
    last_name: str
    middle_name: Optional[str] = None
    teacher_subject: Optional[str] = None
    admin_title: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class UserBrief(BaseModel):
    id: int
    username: str
    first_name: str
    last_name: str
    middle_name: Optional[str] = None
    role: str

    class Config:
        from_attributes = True


class AuthResponse(BaseModel):
    token: str
    refresh_token: Optional[str] = None
    user: UserResponse


class TokenResponse(BaseModel):
    token: str
    refresh_token: str
