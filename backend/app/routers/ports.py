"""Router for the port registry."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..security import require_active_user, require_admin
from ..services import PortConflictError, PortService, PortServiceError

router = APIRouter(dependencies=[Depends(require_active_user)])


def _get_port_or_404(db: Session, port_number: int):
    port = PortService.get_port(db, port_number)
    if port is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Port not found.")
    return port


@router.get("", response_model=schemas.PortListResponse)
def list_ports(
    skip: int = Query(0, ge=0, description="Records to skip"),
    limit: int = Query(100, ge=1, le=500, description="Records to return"),
    only_available: bool = Query(False, description="Only ports with a free slot"),
    db: Session = Depends(get_db),
) -> schemas.PortListResponse:
    items, total = PortService.list_ports(db, skip=skip, limit=limit, only_available=only_available)
    return schemas.PortListResponse(items=items, total=total, limit=limit, skip=skip)


@router.post(
    "",
    response_model=schemas.PortRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def create_port(payload: schemas.PortCreate, db: Session = Depends(get_db)) -> schemas.PortRead:
    try:
        return PortService.create_port(db, payload)
    except PortConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc


@router.get("/{port_number}", response_model=schemas.PortRead)
def get_port(port_number: int, db: Session = Depends(get_db)) -> schemas.PortRead:
    return _get_port_or_404(db, port_number)


@router.put("/{port_number}", response_model=schemas.PortRead, dependencies=[Depends(require_admin)])
def update_port(
    port_number: int,
    payload: schemas.PortUpdate,
    db: Session = Depends(get_db),
) -> schemas.PortRead:
    port = _get_port_or_404(db, port_number)
    try:
        return PortService.update_port(db, port, payload)
    except PortServiceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.delete(
    "/{port_number}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin)],
)
def delete_port(port_number: int, db: Session = Depends(get_db)) -> None:
    port = _get_port_or_404(db, port_number)
    try:
        PortService.delete_port(db, port)
    except PortConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
