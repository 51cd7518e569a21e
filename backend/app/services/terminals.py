"""Terminal lifecycle: creation, updates and soft deletion with port bookkeeping.

A terminal occupies one slot on its port for as long as ``is_deleted`` is
false. Every operation below keeps ``Port.used_ports`` in step with that rule
and commits the terminal row and the port counters together, so a failure
part-way leaves neither a phantom reservation nor a leaked slot.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional, Sequence, Tuple

from sqlalchemy import String, case, cast, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..security import UserIdentity
from .ports import PortNotFoundError, PortService

LOGGER = logging.getLogger(__name__)


class TerminalServiceError(RuntimeError):
    """Base class for terminal lifecycle errors."""


class TerminalNotFoundError(TerminalServiceError):
    """Raised when the terminal does not exist or was already deleted."""


class DuplicateTerminalFieldError(TerminalServiceError):
    """Raised when a unique terminal attribute is already taken."""

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


# Checked in this order; the first clash wins.
UNIQUE_FIELD_GROUPS: Sequence[Tuple[Tuple[str, ...], str]] = (
    (("unit_id", "type"), "Unit ID already exists."),
    (("terminal_id",), "Terminal ID already exists."),
    (("cbs_account",), "CBS account already exists."),
    (("ip_address",), "IP address already exists."),
)

# Columns an update may not blank out.
_REQUIRED_FIELDS = frozenset(
    {
        "unit_id",
        "type",
        "terminal_id",
        "branch_name",
        "district",
        "site",
        "cbs_account",
        "port",
        "ip_address",
        "status",
    }
)


class TerminalService:
    """Operations for managing terminals and the port slots they hold."""

    @staticmethod
    def _ensure_unique(
        db: Session,
        values: dict[str, Any],
        *,
        exclude_id: Optional[str] = None,
    ) -> None:
        for fields, message in UNIQUE_FIELD_GROUPS:
            query = db.query(models.Terminal.id).filter(models.Terminal.is_deleted.is_(False))
            for field in fields:
                query = query.filter(getattr(models.Terminal, field) == values[field])
            if exclude_id is not None:
                query = query.filter(models.Terminal.id != exclude_id)
            if query.first() is not None:
                raise DuplicateTerminalFieldError(message, field="+".join(fields))

    @staticmethod
    def _commit(db: Session) -> None:
        try:
            db.commit()
        except IntegrityError as exc:
            # Lost a race against a concurrent writer holding the same key.
            db.rollback()
            raise DuplicateTerminalFieldError("Terminal already exists.") from exc

    @staticmethod
    def list_terminals(
        db: Session,
        *,
        skip: int = 0,
        limit: int = 100,
        terminal_type: Optional[str] = None,
        site: Optional[models.TerminalSite] = None,
        status: Optional[models.TerminalStatus] = None,
        search: Optional[str] = None,
    ) -> Tuple[Iterable[models.Terminal], int]:
        query = db.query(models.Terminal).filter(models.Terminal.is_deleted.is_(False))

        if terminal_type:
            query = query.filter(models.Terminal.type == terminal_type)
        if site is not None:
            query = query.filter(models.Terminal.site == site)
        if status is not None:
            query = query.filter(models.Terminal.status == status)
        if search:
            normalized = f"%{search.strip().lower()}%"
            query = query.filter(
                or_(
                    func.lower(models.Terminal.terminal_id).like(normalized),
                    func.lower(models.Terminal.terminal_name).like(normalized),
                    func.lower(models.Terminal.branch_name).like(normalized),
                    func.lower(models.Terminal.district).like(normalized),
                    func.lower(models.Terminal.unit_id).like(normalized),
                    func.lower(cast(models.Terminal.ip_address, String)).like(normalized),
                )
            )

        total = query.count()
        items = (
            query.order_by(models.Terminal.branch_name, models.Terminal.terminal_id)
            .offset(max(skip, 0))
            .limit(max(limit, 1))
            .all()
        )
        return items, total

    @staticmethod
    def get_terminal(
        db: Session, terminal_pk: str, *, include_deleted: bool = False
    ) -> Optional[models.Terminal]:
        query = db.query(models.Terminal).filter(models.Terminal.id == terminal_pk)
        if not include_deleted:
            query = query.filter(models.Terminal.is_deleted.is_(False))
        return query.one_or_none()

    @staticmethod
    def create_terminal(
        db: Session,
        data: schemas.TerminalCreate,
        *,
        actor: UserIdentity,
    ) -> models.Terminal:
        payload = data.model_dump()
        TerminalService._ensure_unique(db, payload)
        PortService.reserve_slot(db, payload["port"])

        terminal = models.Terminal(
            **payload,
            status=models.TerminalStatus.NEW,
            is_deleted=False,
            created_by=actor.id,
        )
        db.add(terminal)
        TerminalService._commit(db)
        db.refresh(terminal)
        LOGGER.info(
            "Terminal %s created on port %s by %s",
            terminal.terminal_id,
            terminal.port,
            actor.username,
        )
        return terminal

    @staticmethod
    def update_terminal(
        db: Session,
        terminal: models.Terminal,
        data: schemas.TerminalUpdate,
        *,
        actor: UserIdentity,
    ) -> models.Terminal:
        if terminal.is_deleted:
            raise TerminalNotFoundError("Terminal not found.")

        update_data = {
            field: value
            for field, value in data.model_dump(exclude_unset=True).items()
            if value is not None or field not in _REQUIRED_FIELDS
        }

        merged = {
            field: update_data.get(field, getattr(terminal, field))
            for fields, _ in UNIQUE_FIELD_GROUPS
            for field in fields
        }
        TerminalService._ensure_unique(db, merged, exclude_id=terminal.id)

        new_status = update_data.get("status", terminal.status)
        retiring = new_status in models.RETIRING_STATUSES
        if retiring:
            update_data["is_deleted"] = True

        old_port = terminal.port
        new_port = update_data.get("port", old_port)
        port_changed = new_port != old_port
        if port_changed and not retiring:
            PortService.ensure_slot_available(db, new_port)
        elif port_changed and PortService.get_port(db, new_port) is None:
            raise PortNotFoundError("Port number does not exist.")

        for field, value in update_data.items():
            setattr(terminal, field, value)
        db.add(terminal)

        if retiring:
            PortService.release_slot(db, old_port)
        elif port_changed:
            PortService.release_slot(db, old_port)
            PortService.reserve_slot(db, new_port)

        TerminalService._commit(db)
        db.refresh(terminal)
        if retiring:
            LOGGER.info(
                "Terminal %s retired as %s by %s; port %s released",
                terminal.terminal_id,
                terminal.status.value,
                actor.username,
                old_port,
            )
        elif port_changed:
            LOGGER.info(
                "Terminal %s moved from port %s to %s by %s",
                terminal.terminal_id,
                old_port,
                new_port,
                actor.username,
            )
        return terminal

    @staticmethod
    def delete_terminal(
        db: Session,
        terminal: models.Terminal,
        *,
        actor: UserIdentity,
    ) -> models.Terminal:
        if terminal.status == models.TerminalStatus.DELETED:
            raise TerminalNotFoundError("Terminal not found.")

        # Stopped/Relocated terminals gave their slot back when they were retired.
        if not terminal.is_deleted:
            if PortService.release_slot(db, terminal.port) is None:
                raise PortNotFoundError("Port not found.")

        terminal.status = models.TerminalStatus.DELETED
        terminal.is_deleted = True
        db.add(terminal)
        db.commit()
        db.refresh(terminal)
        LOGGER.info("Terminal %s marked as deleted by %s", terminal.terminal_id, actor.username)
        return terminal

    @staticmethod
    def count_by_type(db: Session, *, include_deleted: bool = False) -> list[dict[str, Any]]:
        query = db.query(models.Terminal.type, func.count(models.Terminal.id))
        if not include_deleted:
            query = query.filter(models.Terminal.is_deleted.is_(False))
        rows = (
            query.group_by(models.Terminal.type)
            .order_by(models.Terminal.type)
            .all()
        )
        return [{"type": terminal_type, "count": int(count)} for terminal_type, count in rows]

    @staticmethod
    def count_by_site(db: Session, *, include_deleted: bool = False) -> list[dict[str, Any]]:
        onsite = func.sum(case((models.Terminal.site == models.TerminalSite.ONSITE, 1), else_=0))
        offsite = func.sum(case((models.Terminal.site == models.TerminalSite.OFFSITE, 1), else_=0))
        query = db.query(
            models.Terminal.type,
            onsite.label("onsite"),
            offsite.label("offsite"),
            func.count(models.Terminal.id).label("total"),
        )
        if not include_deleted:
            query = query.filter(models.Terminal.is_deleted.is_(False))
        rows = (
            query.group_by(models.Terminal.type)
            .order_by(models.Terminal.type)
            .all()
        )
        return [
            {
                "type": row.type,
                "onsite": int(row.onsite or 0),
                "offsite": int(row.offsite or 0),
                "total": int(row.total or 0),
            }
            for row in rows
        ]
