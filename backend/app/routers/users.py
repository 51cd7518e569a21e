"""User administration endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..security import UserIdentity, get_current_user, require_admin
from ..services import (
    DuplicateUserError,
    UserNotFoundError,
    UserPermissionError,
    UserService,
)

router = APIRouter()


def _get_user_or_404(db: Session, user_id: str):
    user = UserService.get_user(db, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.")
    return user


@router.post(
    "",
    response_model=schemas.UserMutationResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_user(
    payload: schemas.UserCreate,
    response: Response,
    db: Session = Depends(get_db),
    current_user: UserIdentity = Depends(require_admin),
) -> schemas.UserMutationResponse:
    """Create a user, or bring back a deleted account registered with the same email."""

    try:
        user, reactivated = UserService.create_user(db, payload, actor=current_user)
    except DuplicateUserError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except UserPermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    if reactivated:
        response.status_code = status.HTTP_200_OK
        message = "User reactivated successfully."
    else:
        message = "User created successfully."
    return schemas.UserMutationResponse(message=message, user=user)


@router.get("", response_model=schemas.UserListResponse)
def list_users(
    db: Session = Depends(get_db),
    current_user: UserIdentity = Depends(require_admin),
) -> schemas.UserListResponse:
    return schemas.UserListResponse(users=list(UserService.list_users(db)))


@router.get("/profile", response_model=schemas.UserProfileResponse)
def read_profile(
    db: Session = Depends(get_db),
    current_user: UserIdentity = Depends(get_current_user),
) -> schemas.UserProfileResponse:
    return schemas.UserProfileResponse(user=_get_user_or_404(db, current_user.id))


@router.get("/role", response_model=schemas.UserRoleResponse)
def read_role(current_user: UserIdentity = Depends(get_current_user)) -> schemas.UserRoleResponse:
    return schemas.UserRoleResponse(role=current_user.role)


@router.delete("/{user_id}", response_model=schemas.UserMutationResponse)
def delete_user(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: UserIdentity = Depends(require_admin),
) -> schemas.UserMutationResponse:
    user = _get_user_or_404(db, user_id)
    try:
        user = UserService.delete_user(db, user, actor=current_user)
    except UserNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except UserPermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    return schemas.UserMutationResponse(message="User deleted successfully.", user=user)


@router.post("/{user_id}/reset-count", response_model=schemas.UserMutationResponse)
def reset_failed_logins(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: UserIdentity = Depends(require_admin),
) -> schemas.UserMutationResponse:
    user = _get_user_or_404(db, user_id)
    user = UserService.reset_failed_logins(db, user, actor=current_user)
    return schemas.UserMutationResponse(message="User account unlocked.", user=user)


@router.post("/{user_id}/reset-password", response_model=schemas.UserMutationResponse)
def reset_password(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: UserIdentity = Depends(require_admin),
) -> schemas.UserMutationResponse:
    user = _get_user_or_404(db, user_id)
    user = UserService.reset_password(db, user, actor=current_user)
    return schemas.UserMutationResponse(message="Password reset successfully.", user=user)
