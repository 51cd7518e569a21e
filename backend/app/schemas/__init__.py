"""Expose Pydantic schemas for convenient imports."""

from .auth import LoginRequest, LoginResponse, PasswordChangeRequest
from .common import MessageResponse, PaginatedResponse
from .port import PortBase, PortCreate, PortListResponse, PortRead, PortUpdate
from .terminal import (
    TerminalBase,
    TerminalCountsResponse,
    TerminalCreate,
    TerminalListResponse,
    TerminalMutationResponse,
    TerminalRead,
    TerminalSiteCount,
    TerminalSiteCountsResponse,
    TerminalTypeCount,
    TerminalUpdate,
)
from .user import (
    UserBase,
    UserCreate,
    UserListResponse,
    UserMutationResponse,
    UserProfileResponse,
    UserRead,
    UserRoleResponse,
)

__all__ = [
    "LoginRequest",
    "LoginResponse",
    "PasswordChangeRequest",
    "MessageResponse",
    "PaginatedResponse",
    "PortBase",
    "PortCreate",
    "PortListResponse",
    "PortRead",
    "PortUpdate",
    "TerminalBase",
    "TerminalCountsResponse",
    "TerminalCreate",
    "TerminalListResponse",
    "TerminalMutationResponse",
    "TerminalRead",
    "TerminalSiteCount",
    "TerminalSiteCountsResponse",
    "TerminalTypeCount",
    "TerminalUpdate",
    "UserBase",
    "UserCreate",
    "UserListResponse",
    "UserMutationResponse",
    "UserProfileResponse",
    "UserRead",
    "UserRoleResponse",
]
