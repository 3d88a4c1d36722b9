"""Profile schemas for request/response validation."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, computed_field


class UserRole(str, Enum):
    """Portal roles."""

    ADMIN = "admin"
    DOCTOR = "doctor"
    STAFF = "staff"
    PATIENT = "patient"


CLINIC_ROLES = (UserRole.ADMIN, UserRole.DOCTOR, UserRole.STAFF)


def split_full_name(full_name: str | None) -> tuple[str, str]:
    """
    Split a full name into first and last name.

    The first whitespace-separated token is the first name; everything
    after it is the last name.
    """
    parts = (full_name or "").split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


class ProfileCreate(BaseModel):
    """Schema for creating a profile on first sign-in."""

    firebase_uid: str = Field(..., description="Firebase user ID")
    email: EmailStr
    full_name: str | None = None
    phone: str | None = Field(None, max_length=20)
    role: UserRole = UserRole.PATIENT


class ProfileUpdate(BaseModel):
    """Fields a user may change on their own profile."""

    full_name: str | None = Field(None, min_length=1, max_length=200)
    phone: str | None = Field(None, max_length=20)
    address: str | None = Field(None, max_length=500)


class AdminProfileUpdate(ProfileUpdate):
    """Fields an administrator may change on any profile."""

    role: UserRole | None = None


class ProfileResponse(BaseModel):
    """Profile schema for API responses."""

    id: UUID
    email: str
    full_name: str | None = None
    phone: str | None = None
    address: str | None = None
    role: UserRole
    disabled: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @computed_field
    @property
    def first_name(self) -> str:
        return split_full_name(self.full_name)[0]

    @computed_field
    @property
    def last_name(self) -> str:
        return split_full_name(self.full_name)[1]


class ProfileListResponse(BaseModel):
    """Paginated profile list."""

    users: list[ProfileResponse]
    total: int
    page: int
    page_size: int
