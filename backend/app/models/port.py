"""Models for the port registry."""

from __future__ import annotations

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String, func
from sqlalchemy.orm import relationship

from ..database import Base


class Port(Base):
    """A connection slot that a bounded number of terminals can share."""

    __tablename__ = "ports"
    __table_args__ = (
        CheckConstraint("port_capacity >= 0", name="ck_ports_capacity_non_negative"),
        CheckConstraint("used_ports >= 0", name="ck_ports_used_non_negative"),
    )

    id = Column("port_id", Integer, primary_key=True, autoincrement=True)
    port_number = Column(Integer, nullable=False, unique=True)
    port_capacity = Column(Integer, nullable=False, default=0)
    used_ports = Column(Integer, nullable=False, default=0)
    description = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    # Retired terminals keep their historical port number.
    terminals = relationship("Terminal", back_populates="port_ref", passive_deletes="all")

    @property
    def available(self) -> int:
        return max((self.port_capacity or 0) - (self.used_ports or 0), 0)

    @property
    def is_full(self) -> bool:
        return (self.used_ports or 0) >= (self.port_capacity or 0)
