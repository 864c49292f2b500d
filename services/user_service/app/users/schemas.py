"""User request/response schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from services.user_service.app.auth.models import Role


class UserCreate(BaseModel):
    """Fields required to create a user (registration and CSV rows)."""

    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    full_name: str | None = Field(None, max_length=255)
    role: Role = Role.USER

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("full_name")
    @classmethod
    def blank_name_is_none(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            return None
        return v.strip() if v else v


class UserUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    full_name: str | None = Field(None, max_length=255)
    password: str | None = Field(None, min_length=8, max_length=72)
    role: Role | None = None


class UserSearch(BaseModel):
    """Query parameters for listing users."""

    keyword: str | None = Field(None, max_length=255, description="Matches email or full name")
    role: Role | None = None
    page: int = Field(1, ge=1)
    page_size: int = Field(20, ge=1, le=100)


class UserResponse(BaseModel):
    """Public view of a user; never includes the password hash."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    full_name: str | None
    role: Role
    locale: str | None
    is_active: bool
    created_at: datetime


class UserDetailResponse(UserResponse):
    """User details for administrators, with a link to the avatar."""

    avatar_url: str | None = None
    updated_at: datetime


class LoginRequest(BaseModel):
    """Email/password login request."""

    email: EmailStr
    password: str
