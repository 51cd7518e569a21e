"""Service layer for console users: administration, login and password flows."""

from __future__ import annotations

import logging
import os
from typing import Iterable, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..security import UserIdentity, generate_password_hash, verify_password

LOGGER = logging.getLogger(__name__)

MAX_FAILED_LOGINS = 5
DEFAULT_RESET_PASSWORD_ENV = "DEFAULT_RESET_PASSWORD"
DEFAULT_RESET_PASSWORD = "12341234"
BOOTSTRAP_USERNAME_ENV = "BOOTSTRAP_SUPERADMIN_USERNAME"
BOOTSTRAP_EMAIL_ENV = "BOOTSTRAP_SUPERADMIN_EMAIL"
BOOTSTRAP_PASSWORD_HASH_ENV = "BOOTSTRAP_SUPERADMIN_PASSWORD_HASH"


class UserServiceError(Exception):
    """Base class for user related errors."""


class UserNotFoundError(UserServiceError):
    """Raised when the user does not exist or was deleted."""


class DuplicateUserError(UserServiceError):
    """Raised when an email or username is held by another active user."""


class UserPermissionError(UserServiceError):
    """Raised when the caller may not perform the operation on this user."""


class AuthenticationError(UserServiceError):
    """Raised when a login attempt is rejected."""


class AccountLockedError(AuthenticationError):
    """Raised once a user has exhausted the allowed failed logins."""


class PasswordChangeError(UserServiceError):
    """Raised when a self-service password change is rejected."""


LOCKED_MESSAGE = "Your account is locked! Please contact your administrator."
BAD_CREDENTIALS_MESSAGE = "Username or password is incorrect."


def _resolve_reset_password() -> str:
    return os.getenv(DEFAULT_RESET_PASSWORD_ENV) or DEFAULT_RESET_PASSWORD


class UserService:
    """Operations for managing console users."""

    @staticmethod
    def _record_activity(
        db: Session,
        user_id: str,
        action: models.UserActivityAction,
        description: str,
        *,
        performed_by: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        db.add(
            models.UserActivity(
                user_id=user_id,
                action=action,
                description=description,
                performed_by=performed_by,
                ip_address=ip_address,
                user_agent=(user_agent or "")[:255] or None,
            )
        )

    @staticmethod
    def list_users(db: Session) -> Iterable[models.User]:
        return (
            db.query(models.User)
            .filter(models.User.is_deleted.is_(False))
            .order_by(models.User.first_name, models.User.username)
            .all()
        )

    @staticmethod
    def get_user(db: Session, user_id: str) -> Optional[models.User]:
        return (
            db.query(models.User)
            .filter(models.User.id == user_id, models.User.is_deleted.is_(False))
            .one_or_none()
        )

    @staticmethod
    def create_user(
        db: Session,
        data: schemas.UserCreate,
        *,
        actor: UserIdentity,
    ) -> Tuple[models.User, bool]:
        """Create a user, or revive a soft-deleted one holding the same email.

        Returns the user and whether the reactivation path was taken.
        """

        if data.role == models.UserRole.SUPERADMIN and actor.role != models.UserRole.SUPERADMIN:
            raise UserPermissionError("Only a superadmin can grant the superadmin role.")

        by_email = db.query(models.User).filter(models.User.email == data.email).one_or_none()
        by_username = (
            db.query(models.User).filter(models.User.username == data.username).one_or_none()
        )

        if by_email is not None and not by_email.is_deleted:
            raise DuplicateUserError("Email already in use")
        if by_username is not None and by_username is not by_email:
            # Soft-deleted accounts keep their username reserved.
            raise DuplicateUserError("Username already in use")

        payload = data.model_dump(exclude={"password"})
        password_hash = generate_password_hash(data.password)

        if by_email is not None:
            user = by_email
            for field, value in payload.items():
                setattr(user, field, value)
            user.password_hash = password_hash
            user.status = models.UserStatus.NEW
            user.is_deleted = False
            user.wrong_password_count = 0
            user.created_by = actor.id
            action = models.UserActivityAction.REACTIVATE_USER
            description = f"User {user.username} reactivated"
        else:
            user = models.User(
                **payload,
                password_hash=password_hash,
                status=models.UserStatus.NEW,
                is_deleted=False,
                wrong_password_count=0,
                created_by=actor.id,
            )
            action = models.UserActivityAction.CREATE_RECORD
            description = f"User {user.username} created"

        db.add(user)
        try:
            db.flush()
            UserService._record_activity(db, user.id, action, description, performed_by=actor.username)
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise DuplicateUserError("Email or username already in use") from exc
        db.refresh(user)
        LOGGER.info("%s by %s", description, actor.username)
        return user, by_email is not None

    @staticmethod
    def authenticate(
        db: Session,
        username: str,
        password: str,
        *,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> models.User:
        user = (
            db.query(models.User)
            .filter(models.User.username == username.strip(), models.User.is_deleted.is_(False))
            .one_or_none()
        )
        if user is None:
            raise AuthenticationError(BAD_CREDENTIALS_MESSAGE)

        if user.wrong_password_count >= MAX_FAILED_LOGINS:
            raise AccountLockedError(LOCKED_MESSAGE)

        if not verify_password(password, user.password_hash):
            user.wrong_password_count += 1
            UserService._record_activity(
                db,
                user.id,
                models.UserActivityAction.LOGIN_FAILED,
                f"Wrong password (attempt {user.wrong_password_count})",
                ip_address=ip_address,
                user_agent=user_agent,
            )
            db.add(user)
            db.commit()
            remaining = MAX_FAILED_LOGINS - user.wrong_password_count
            if remaining <= 0:
                LOGGER.warning("User %s locked after %s failed logins", user.username, MAX_FAILED_LOGINS)
                raise AccountLockedError(LOCKED_MESSAGE)
            raise AuthenticationError(f"Wrong password! You are left with {remaining} tries.")

        user.wrong_password_count = 0
        UserService._record_activity(
            db,
            user.id,
            models.UserActivityAction.LOGIN,
            "User logged in successfully",
            ip_address=ip_address,
            user_agent=user_agent,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        LOGGER.info("User %s logged in", user.username)
        return user

    @staticmethod
    def record_logout(
        db: Session,
        identity: UserIdentity,
        *,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        UserService._record_activity(
            db,
            identity.id,
            models.UserActivityAction.LOGOUT,
            "User logged out",
            ip_address=ip_address,
            user_agent=user_agent,
        )
        db.commit()

    @staticmethod
    def delete_user(db: Session, user: models.User, *, actor: UserIdentity) -> models.User:
        if user.is_deleted:
            raise UserNotFoundError("User not found.")
        if user.role in (models.UserRole.SUPERADMIN, models.UserRole.TEMPO_SUPERADMIN):
            raise UserPermissionError("Superadmin cannot be deleted.")

        user.status = models.UserStatus.DELETED
        user.is_deleted = True
        db.add(user)
        UserService._record_activity(
            db,
            user.id,
            models.UserActivityAction.DELETE_USER,
            "User marked as deleted",
            performed_by=actor.username,
        )
        db.commit()
        db.refresh(user)
        LOGGER.info("User %s deleted by %s", user.username, actor.username)
        return user

    @staticmethod
    def reset_failed_logins(db: Session, user: models.User, *, actor: UserIdentity) -> models.User:
        user.wrong_password_count = 0
        db.add(user)
        UserService._record_activity(
            db,
            user.id,
            models.UserActivityAction.UNLOCK_USER,
            "Failed login counter cleared",
            performed_by=actor.username,
        )
        db.commit()
        db.refresh(user)
        LOGGER.info("User %s unlocked by %s", user.username, actor.username)
        return user

    @staticmethod
    def reset_password(db: Session, user: models.User, *, actor: UserIdentity) -> models.User:
        """Force a password reset; the user must pick a new one at next login."""

        user.password_hash = generate_password_hash(_resolve_reset_password())
        user.role = models.UserRole(user.role).as_temporary()
        user.status = models.UserStatus.NEW
        user.wrong_password_count = 0
        db.add(user)
        UserService._record_activity(
            db,
            user.id,
            models.UserActivityAction.RESET_PASSWORD,
            "Password reset by administrator",
            performed_by=actor.username,
        )
        db.commit()
        db.refresh(user)
        LOGGER.info("Password of %s reset by %s", user.username, actor.username)
        return user

    @staticmethod
    def change_password(
        db: Session,
        identity: UserIdentity,
        data: schemas.PasswordChangeRequest,
        *,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> models.User:
        if data.new_password != data.confirm_new_password:
            raise PasswordChangeError("New passwords do not match")

        user = UserService.get_user(db, identity.id)
        if user is None:
            raise UserNotFoundError("User not found")
        if not verify_password(data.password, user.password_hash):
            raise PasswordChangeError("Incorrect current password")

        user.password_hash = generate_password_hash(data.new_password)
        if user.status == models.UserStatus.NEW:
            user.status = models.UserStatus.ACTIVE
        user.role = models.UserRole(user.role).as_permanent()
        db.add(user)
        UserService._record_activity(
            db,
            user.id,
            models.UserActivityAction.CHANGE_PASSWORD,
            "User changed their password",
            ip_address=ip_address,
            user_agent=user_agent,
        )
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def ensure_bootstrap_superadmin(db: Session) -> Optional[models.User]:
        """Create the first superadmin from the environment when none exists."""

        username = os.getenv(BOOTSTRAP_USERNAME_ENV)
        email = os.getenv(BOOTSTRAP_EMAIL_ENV)
        password_hash = os.getenv(BOOTSTRAP_PASSWORD_HASH_ENV)
        if not (username and email and password_hash):
            return None

        existing = (
            db.query(models.User)
            .filter(
                or_(
                    models.User.role.in_(
                        (models.UserRole.SUPERADMIN, models.UserRole.TEMPO_SUPERADMIN)
                    ),
                    models.User.username == username.strip(),
                )
            )
            .first()
        )
        if existing is not None:
            return None

        user = models.User(
            first_name="System",
            father_name="Administrator",
            email=email.strip().lower(),
            username=username.strip(),
            role=models.UserRole.SUPERADMIN,
            password_hash=password_hash,
            status=models.UserStatus.ACTIVE,
            is_deleted=False,
            wrong_password_count=0,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        LOGGER.info("Bootstrapped superadmin %s", user.username)
        return user
