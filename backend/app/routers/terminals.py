"""Router exposing the terminal inventory and its lifecycle operations."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..models.terminal import TerminalSite, TerminalStatus
from ..security import UserIdentity, require_active_user
from ..services import (
    DuplicateTerminalFieldError,
    PortNotFoundError,
    PortUnavailableError,
    TerminalNotFoundError,
    TerminalService,
)

router = APIRouter()


def _get_terminal_or_404(db: Session, terminal_pk: str, *, include_deleted: bool = False):
    terminal = TerminalService.get_terminal(db, terminal_pk, include_deleted=include_deleted)
    if terminal is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Terminal not found.")
    return terminal


@router.get("", response_model=schemas.TerminalListResponse)
def list_terminals(
    skip: int = Query(0, ge=0, description="Number of terminals to skip"),
    limit: int = Query(100, ge=1, le=500, description="Maximum number of terminals to return"),
    terminal_type: Optional[str] = Query(None, alias="type", description="Filter by terminal type"),
    site: Optional[TerminalSite] = Query(None, description="Filter by site"),
    terminal_status: Optional[TerminalStatus] = Query(None, alias="status", description="Filter by status"),
    search: Optional[str] = Query(None, description="Search across ids, names, branch, district and IP address"),
    db: Session = Depends(get_db),
    current_user: UserIdentity = Depends(require_active_user),
) -> schemas.TerminalListResponse:
    items, total = TerminalService.list_terminals(
        db,
        skip=skip,
        limit=limit,
        terminal_type=terminal_type,
        site=site,
        status=terminal_status,
        search=search,
    )
    return schemas.TerminalListResponse(
        items=items,
        total=total,
        limit=limit,
        skip=skip,
        role=current_user.role,
    )


@router.get("/counts", response_model=schemas.TerminalCountsResponse)
def get_terminal_counts(
    include_deleted: bool = Query(False, description="Also count deleted and retired terminals"),
    db: Session = Depends(get_db),
    current_user: UserIdentity = Depends(require_active_user),
) -> schemas.TerminalCountsResponse:
    counts = TerminalService.count_by_type(db, include_deleted=include_deleted)
    return schemas.TerminalCountsResponse(
        terminals_count=[schemas.TerminalTypeCount(**item) for item in counts]
    )


@router.get("/site-counts", response_model=schemas.TerminalSiteCountsResponse)
def get_site_counts(
    include_deleted: bool = Query(False, description="Also count deleted and retired terminals"),
    db: Session = Depends(get_db),
    current_user: UserIdentity = Depends(require_active_user),
) -> schemas.TerminalSiteCountsResponse:
    rows = TerminalService.count_by_site(db, include_deleted=include_deleted)
    return schemas.TerminalSiteCountsResponse(data=[schemas.TerminalSiteCount(**row) for row in rows])


@router.get("/{terminal_pk}", response_model=schemas.TerminalRead)
def get_terminal(
    terminal_pk: str,
    db: Session = Depends(get_db),
    current_user: UserIdentity = Depends(require_active_user),
) -> schemas.TerminalRead:
    return _get_terminal_or_404(db, terminal_pk)


@router.post(
    "",
    response_model=schemas.TerminalMutationResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_terminal(
    payload: schemas.TerminalCreate,
    db: Session = Depends(get_db),
    current_user: UserIdentity = Depends(require_active_user),
) -> schemas.TerminalMutationResponse:
    try:
        terminal = TerminalService.create_terminal(db, payload, actor=current_user)
    except DuplicateTerminalFieldError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except PortUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return schemas.TerminalMutationResponse(
        message="The terminal is successfully created.",
        terminal=terminal,
    )


@router.put("/{terminal_pk}", response_model=schemas.TerminalMutationResponse)
def update_terminal(
    terminal_pk: str,
    payload: schemas.TerminalUpdate,
    db: Session = Depends(get_db),
    current_user: UserIdentity = Depends(require_active_user),
) -> schemas.TerminalMutationResponse:
    terminal = _get_terminal_or_404(db, terminal_pk)
    try:
        terminal = TerminalService.update_terminal(db, terminal, payload, actor=current_user)
    except TerminalNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except DuplicateTerminalFieldError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except PortUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return schemas.TerminalMutationResponse(
        message="Terminal successfully updated.",
        terminal=terminal,
    )


@router.delete("/{terminal_pk}", response_model=schemas.MessageResponse)
def delete_terminal(
    terminal_pk: str,
    db: Session = Depends(get_db),
    current_user: UserIdentity = Depends(require_active_user),
) -> schemas.MessageResponse:
    terminal = _get_terminal_or_404(db, terminal_pk, include_deleted=True)
    try:
        TerminalService.delete_terminal(db, terminal, actor=current_user)
    except (TerminalNotFoundError, PortNotFoundError) as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return schemas.MessageResponse(message="Terminal marked as deleted successfully")
