"""Expose SQLAlchemy models for convenient imports."""

from .port import Port
from .terminal import (
    RETIRING_STATUSES,
    Terminal,
    TerminalSite,
    TerminalStatus,
)
from .user import (
    TEMPORARY_ROLE_PREFIX,
    User,
    UserActivity,
    UserActivityAction,
    UserRole,
    UserStatus,
)

__all__ = [
    "Port",
    "Terminal",
    "TerminalSite",
    "TerminalStatus",
    "RETIRING_STATUSES",
    "User",
    "UserActivity",
    "UserActivityAction",
    "UserRole",
    "UserStatus",
    "TEMPORARY_ROLE_PREFIX",
]
