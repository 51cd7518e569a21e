"""Session endpoints: login, logout and self-service password change."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..security import (
    AUTH_COOKIE_NAME,
    UserIdentity,
    cookie_is_secure,
    create_access_token,
    get_current_user,
    resolve_access_token_expiry,
)
from ..services import (
    AuthenticationError,
    PasswordChangeError,
    UserNotFoundError,
    UserService,
)

router = APIRouter(tags=["auth"])


def _client_details(request: Request) -> tuple[str | None, str | None]:
    host = request.client.host if request.client else None
    return host, request.headers.get("user-agent")


@router.post("/login", response_model=schemas.LoginResponse)
def login(
    payload: schemas.LoginRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
) -> schemas.LoginResponse:
    """Authenticate a user and open a cookie-backed session."""

    ip_address, user_agent = _client_details(request)
    try:
        user = UserService.authenticate(
            db,
            payload.username,
            payload.password,
            ip_address=ip_address,
            user_agent=user_agent,
        )
    except AuthenticationError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc

    token = create_access_token(UserIdentity.from_user(user))
    response.set_cookie(
        AUTH_COOKIE_NAME,
        token,
        max_age=int(resolve_access_token_expiry().total_seconds()),
        httponly=True,
        secure=cookie_is_secure(),
        samesite="lax",
    )
    response.headers["token"] = token
    return schemas.LoginResponse(token=token, data=user)


@router.post("/logout", response_model=schemas.MessageResponse)
def logout(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    current_user: UserIdentity = Depends(get_current_user),
) -> schemas.MessageResponse:
    ip_address, user_agent = _client_details(request)
    UserService.record_logout(db, current_user, ip_address=ip_address, user_agent=user_agent)
    response.delete_cookie(AUTH_COOKIE_NAME)
    return schemas.MessageResponse(message="User logged out successfully.")


@router.post("/forgot-password", response_model=schemas.UserMutationResponse)
def change_password(
    payload: schemas.PasswordChangeRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: UserIdentity = Depends(get_current_user),
) -> schemas.UserMutationResponse:
    """Let the caller replace their password; clears a pending forced reset."""

    ip_address, user_agent = _client_details(request)
    try:
        user = UserService.change_password(
            db,
            current_user,
            payload,
            ip_address=ip_address,
            user_agent=user_agent,
        )
    except PasswordChangeError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except UserNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return schemas.UserMutationResponse(message="Password changed successfully.", user=user)
