"""Schemas for console user administration."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models.user import UserRole, UserStatus


class UserBase(BaseModel):
    """Shared fields for user operations."""

    first_name: str = Field(..., min_length=1, max_length=120)
    father_name: str = Field(..., min_length=1, max_length=120)
    grandfather_name: Optional[str] = Field(default=None, max_length=120)
    email: str = Field(..., min_length=3, max_length=255)
    department: Optional[str] = Field(default=None, max_length=120)
    role: UserRole = UserRole.USER
    username: str = Field(..., min_length=3, max_length=120)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if "@" not in normalized:
            raise ValueError("email must contain '@'")
        return normalized

    @field_validator("username", "first_name", "father_name")
    @classmethod
    def _strip_strings(cls, value: str) -> str:
        return value.strip()


class UserCreate(UserBase):
    """Payload for creating (or reactivating) a user."""

    password: str = Field(..., min_length=8)

    @field_validator("role")
    @classmethod
    def _permanent_role(cls, value: UserRole) -> UserRole:
        if value.is_temporary:
            raise ValueError("temporary roles are assigned by password resets only")
        return value


class UserRead(UserBase):
    """User representation returned by the API; never includes the hash."""

    id: str
    status: UserStatus
    is_deleted: bool
    wrong_password_count: int
    created_by: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserMutationResponse(BaseModel):
    status: str = "success"
    message: str
    user: UserRead


class UserListResponse(BaseModel):
    status: str = "true"
    users: list[UserRead]


class UserProfileResponse(BaseModel):
    status: str = "true"
    user: UserRead


class UserRoleResponse(BaseModel):
    status: str = "true"
    role: UserRole
