"""Models for console users and their activity trail."""

from __future__ import annotations

import enum
import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    false,
    func,
)
from sqlalchemy.orm import relationship

from ..database import Base
from ..db_types import GUID

TEMPORARY_ROLE_PREFIX = "tempo_"


class UserRole(str, enum.Enum):
    """Roles a console user can hold.

    ``tempo_*`` roles mark accounts whose password was reset by an
    administrator and must be changed before the account is usable again.
    """

    SUPERADMIN = "superadmin"
    ADMIN = "admin"
    USER = "user"
    TEMPO_SUPERADMIN = "tempo_superadmin"
    TEMPO_ADMIN = "tempo_admin"
    TEMPO_USER = "tempo_user"

    @property
    def is_temporary(self) -> bool:
        return self.value.startswith(TEMPORARY_ROLE_PREFIX)

    def as_temporary(self) -> "UserRole":
        if self.is_temporary:
            return self
        return UserRole(f"{TEMPORARY_ROLE_PREFIX}{self.value}")

    def as_permanent(self) -> "UserRole":
        if not self.is_temporary:
            return self
        return UserRole(self.value[len(TEMPORARY_ROLE_PREFIX):])


class UserStatus(str, enum.Enum):
    NEW = "New"
    ACTIVE = "Active"
    DELETED = "Deleted"


class UserActivityAction(str, enum.Enum):
    """Events recorded in the user activity log."""

    LOGIN = "login"
    LOGIN_FAILED = "login_failed"
    LOGOUT = "logout"
    CREATE_RECORD = "create_record"
    REACTIVATE_USER = "reactivate_user"
    DELETE_USER = "delete_user"
    UNLOCK_USER = "unlock_user"
    RESET_PASSWORD = "reset_password"
    CHANGE_PASSWORD = "change_password"


USER_ROLE_ENUM = SAEnum(
    UserRole,
    name="user_role_enum",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
    native_enum=False,
    validate_strings=True,
)

USER_STATUS_ENUM = SAEnum(
    UserStatus,
    name="user_status_enum",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
    native_enum=False,
    validate_strings=True,
)


class User(Base):
    """A console operator."""

    __tablename__ = "users"

    id = Column("user_id", GUID(), primary_key=True, default=uuid.uuid4)
    first_name = Column(String(120), nullable=False)
    father_name = Column(String(120), nullable=False)
    grandfather_name = Column(String(120), nullable=True)
    email = Column(String(255), nullable=False, unique=True)
    department = Column(String(120), nullable=True)
    role = Column(USER_ROLE_ENUM, nullable=False, default=UserRole.USER)
    username = Column(String(120), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    status = Column(USER_STATUS_ENUM, nullable=False, default=UserStatus.NEW)
    is_deleted = Column(Boolean, nullable=False, default=False, server_default=false())
    wrong_password_count = Column(Integer, nullable=False, default=0, server_default="0")
    created_by = Column(
        GUID(),
        ForeignKey("users.user_id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    activities = relationship(
        "UserActivity",
        back_populates="user",
        cascade="all, delete-orphan",
    )


class UserActivity(Base):
    """Audit log for authentication and account administration events."""

    __tablename__ = "user_activity_log"

    id = Column("activity_id", GUID(), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        GUID(),
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    action = Column(
        SAEnum(
            UserActivityAction,
            name="user_activity_action_enum",
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
            native_enum=False,
        ),
        nullable=False,
    )
    description = Column(Text, nullable=True)
    performed_by = Column(String(120), nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(255), nullable=True)
    occurred_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="activities")


Index("user_activity_log_action_idx", UserActivity.action)
Index("users_is_deleted_idx", User.is_deleted)
