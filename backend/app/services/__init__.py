"""Service layer encapsulating business logic for API routers."""

from .ports import (
    PortCapacityReachedError,
    PortConflictError,
    PortNotFoundError,
    PortService,
    PortServiceError,
    PortUnavailableError,
)
from .terminals import (
    DuplicateTerminalFieldError,
    TerminalNotFoundError,
    TerminalService,
    TerminalServiceError,
)
from .users import (
    AccountLockedError,
    AuthenticationError,
    DuplicateUserError,
    PasswordChangeError,
    UserNotFoundError,
    UserPermissionError,
    UserService,
    UserServiceError,
)

__all__ = [
    "PortCapacityReachedError",
    "PortConflictError",
    "PortNotFoundError",
    "PortService",
    "PortServiceError",
    "PortUnavailableError",
    "DuplicateTerminalFieldError",
    "TerminalNotFoundError",
    "TerminalService",
    "TerminalServiceError",
    "AccountLockedError",
    "AuthenticationError",
    "DuplicateUserError",
    "PasswordChangeError",
    "UserNotFoundError",
    "UserPermissionError",
    "UserService",
    "UserServiceError",
]
