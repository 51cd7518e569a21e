"""Pydantic schemas for authentication endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field

from .user import UserRead


class LoginRequest(BaseModel):
    """Credentials submitted to open a session."""

    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    """Session token returned upon successful authentication."""

    token: str
    token_type: str = "bearer"
    message: str = "User logged in successfully"
    data: UserRead


class PasswordChangeRequest(BaseModel):
    """Self-service password change for the authenticated user."""

    password: str = Field(..., min_length=1, description="Current password")
    new_password: str = Field(..., min_length=8)
    confirm_new_password: str = Field(..., min_length=8)
