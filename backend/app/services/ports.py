"""Business logic for the port registry and its capacity counters."""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Tuple

from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, schemas

LOGGER = logging.getLogger(__name__)

RETIRED_REFERENCE_MESSAGE = "Port is still referenced by retired terminals."


class PortServiceError(RuntimeError):
    """Raised when port registry operations cannot be completed."""


class PortUnavailableError(PortServiceError):
    """Raised when a terminal cannot be attached to the requested port."""


class PortNotFoundError(PortUnavailableError):
    """Raised when a port number is not registered."""


class PortCapacityReachedError(PortUnavailableError):
    """Raised when a port has no free slot left."""


class PortConflictError(PortServiceError):
    """Raised when a port number is already registered or still in use."""


class PortService:
    """Operations for managing ports and the slots terminals occupy on them."""

    @staticmethod
    def list_ports(
        db: Session,
        *,
        skip: int = 0,
        limit: int = 100,
        only_available: bool = False,
    ) -> Tuple[Iterable[models.Port], int]:
        query = db.query(models.Port)
        if only_available:
            query = query.filter(models.Port.used_ports < models.Port.port_capacity)
        total = query.count()
        items = (
            query.order_by(models.Port.port_number)
            .offset(max(skip, 0))
            .limit(max(limit, 1))
            .all()
        )
        return items, total

    @staticmethod
    def get_port(db: Session, port_number: int, *, for_update: bool = False) -> Optional[models.Port]:
        query = db.query(models.Port).filter(models.Port.port_number == port_number)
        if for_update:
            # Row lock on PostgreSQL; SQLite ignores it and serialises writers itself.
            query = query.with_for_update()
        return query.one_or_none()

    @staticmethod
    def create_port(db: Session, data: schemas.PortCreate) -> models.Port:
        if PortService.get_port(db, data.port_number) is not None:
            raise PortConflictError("Port number already exists.")
        port = models.Port(**data.model_dump(), used_ports=0)
        db.add(port)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise PortConflictError("Port number already exists.") from exc
        db.refresh(port)
        LOGGER.info("Registered port %s with capacity %s", port.port_number, port.port_capacity)
        return port

    @staticmethod
    def update_port(db: Session, port: models.Port, data: schemas.PortUpdate) -> models.Port:
        update_data = data.model_dump(exclude_unset=True)
        capacity = update_data.get("port_capacity")
        if capacity is not None and capacity < port.used_ports:
            raise PortServiceError(
                f"Port capacity cannot be lower than the {port.used_ports} slots in use."
            )
        for field, value in update_data.items():
            if field == "port_capacity" and value is None:
                continue
            setattr(port, field, value)
        db.add(port)
        db.commit()
        db.refresh(port)
        return port

    @staticmethod
    def delete_port(db: Session, port: models.Port) -> None:
        # Retired and deleted terminals keep their port number, so they block removal too.
        active, retired = (
            db.query(
                func.count(case((models.Terminal.is_deleted.is_(False), 1))),
                func.count(case((models.Terminal.is_deleted.is_(True), 1))),
            )
            .filter(models.Terminal.port == port.port_number)
            .one()
        )
        if active:
            raise PortConflictError("Port still has terminals attached.")
        if retired:
            raise PortConflictError(RETIRED_REFERENCE_MESSAGE)
        port_number = port.port_number
        db.delete(port)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise PortConflictError(RETIRED_REFERENCE_MESSAGE) from exc
        LOGGER.info("Removed port %s", port_number)

    @staticmethod
    def reserve_slot(db: Session, port_number: int) -> models.Port:
        """Take one slot on ``port_number`` within the caller's transaction."""

        port = PortService.ensure_slot_available(db, port_number)
        port.used_ports += 1
        db.add(port)
        LOGGER.info(
            "Reserved slot on port %s (%s/%s)",
            port.port_number,
            port.used_ports,
            port.port_capacity,
        )
        return port

    @staticmethod
    def ensure_slot_available(db: Session, port_number: int) -> models.Port:
        port = PortService.get_port(db, port_number, for_update=True)
        if port is None:
            raise PortNotFoundError("Port number does not exist.")
        if port.is_full:
            raise PortCapacityReachedError("Port capacity is reached.")
        return port

    @staticmethod
    def release_slot(db: Session, port_number: int) -> Optional[models.Port]:
        """Give back one slot on ``port_number``; the counter never drops below zero."""

        port = PortService.get_port(db, port_number, for_update=True)
        if port is None:
            LOGGER.warning("Cannot release slot on unknown port %s", port_number)
            return None
        if port.used_ports > 0:
            port.used_ports -= 1
        db.add(port)
        LOGGER.info(
            "Released slot on port %s (%s/%s)",
            port.port_number,
            port.used_ports,
            port.port_capacity,
        )
        return port