"""Models for ATM and branch terminals."""

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
    false,
    func,
)
from sqlalchemy.orm import relationship

from ..database import Base
from ..db_types import GUID, INET


class TerminalSite(str, enum.Enum):
    """Where the terminal is installed relative to its branch."""

    ONSITE = "Onsite"
    OFFSITE = "Offsite"


class TerminalStatus(str, enum.Enum):
    """Lifecycle states of a terminal."""

    NEW = "New"
    ACTIVE = "Active"
    STOPPED = "Stopped"
    RELOCATED = "Relocated"
    DELETED = "Deleted"


# Statuses that retire a terminal and free its port slot.
RETIRING_STATUSES = frozenset({TerminalStatus.STOPPED, TerminalStatus.RELOCATED})


TERMINAL_SITE_ENUM = SAEnum(
    TerminalSite,
    name="terminal_site_enum",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
    native_enum=False,
    validate_strings=True,
)

TERMINAL_STATUS_ENUM = SAEnum(
    TerminalStatus,
    name="terminal_status_enum",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
    native_enum=False,
    validate_strings=True,
)


class Terminal(Base):
    """An ATM/device inventory record bound to a branch, site and port."""

    __tablename__ = "terminals"

    id = Column("terminal_pk", GUID(), primary_key=True, default=uuid.uuid4)
    unit_id = Column(String(64), nullable=False)
    type = Column(String(64), nullable=False)
    terminal_id = Column(String(64), nullable=False)
    terminal_name = Column(String(255), nullable=True)
    branch_name = Column(String(255), nullable=False)
    district = Column(String(255), nullable=False)
    site = Column(TERMINAL_SITE_ENUM, nullable=False)
    cbs_account = Column(String(64), nullable=False)
    port = Column(
        Integer,
        ForeignKey("ports.port_number", onupdate="CASCADE"),
        nullable=False,
        index=True,
    )
    ip_address = Column(INET(), nullable=False)
    status = Column(TERMINAL_STATUS_ENUM, nullable=False, default=TerminalStatus.NEW)
    is_deleted = Column(Boolean, nullable=False, default=False, server_default=false())
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

    port_ref = relationship("Port", back_populates="terminals")
    creator = relationship("User")


_ACTIVE_ONLY = Terminal.is_deleted == false()

Index(
    "uq_terminals_active_unit_type",
    Terminal.unit_id,
    Terminal.type,
    unique=True,
    sqlite_where=_ACTIVE_ONLY,
    postgresql_where=_ACTIVE_ONLY,
)
Index(
    "uq_terminals_active_terminal_id",
    Terminal.terminal_id,
    unique=True,
    sqlite_where=_ACTIVE_ONLY,
    postgresql_where=_ACTIVE_ONLY,
)
Index(
    "uq_terminals_active_cbs_account",
    Terminal.cbs_account,
    unique=True,
    sqlite_where=_ACTIVE_ONLY,
    postgresql_where=_ACTIVE_ONLY,
)
Index(
    "uq_terminals_active_ip_address",
    Terminal.ip_address,
    unique=True,
    sqlite_where=_ACTIVE_ONLY,
    postgresql_where=_ACTIVE_ONLY,
)
Index("terminals_type_site_idx", Terminal.type, Terminal.site)
