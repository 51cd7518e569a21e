"""Security utilities for password hashing, access tokens and authorization."""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import os
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Optional

from fastapi import Cookie, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from . import models
from .database import get_db

AUTH_JWT_SECRET_ENV = "AUTH_JWT_SECRET"
ACCESS_TOKEN_EXPIRE_MINUTES_ENV = "ACCESS_TOKEN_EXPIRE_MINUTES"
PASSWORD_HASH_ITERATIONS_ENV = "PASSWORD_HASH_ITERATIONS"
AUTH_COOKIE_SECURE_ENV = "AUTH_COOKIE_SECURE"

AUTH_COOKIE_NAME = "jwt"
PBKDF2_DEFAULT_ITERATIONS = 390_000
DEFAULT_TOKEN_LIFETIME = timedelta(days=1)

ADMIN_ROLES = frozenset({models.UserRole.SUPERADMIN, models.UserRole.ADMIN})

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/login", auto_error=False)


class SecurityConfigurationError(RuntimeError):
    """Raised when mandatory security settings are missing or invalid."""


def _read_env_var(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise SecurityConfigurationError(f"Environment variable '{name}' is required")
    return value


def _resolve_hash_iterations() -> int:
    raw = os.getenv(PASSWORD_HASH_ITERATIONS_ENV)
    if not raw:
        return PBKDF2_DEFAULT_ITERATIONS
    try:
        iterations = int(raw)
    except ValueError as exc:
        raise SecurityConfigurationError(f"{PASSWORD_HASH_ITERATIONS_ENV} must be an integer") from exc
    if iterations <= 0:
        raise SecurityConfigurationError(f"{PASSWORD_HASH_ITERATIONS_ENV} must be positive")
    return iterations


def generate_password_hash(password: str, *, iterations: Optional[int] = None) -> str:
    """Return a PBKDF2-based password hash string."""

    if not password:
        raise ValueError("password must not be empty")
    rounds = iterations or _resolve_hash_iterations()
    salt = secrets.token_bytes(16)
    derived = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, rounds)
    components = (
        str(rounds),
        base64.urlsafe_b64encode(salt).decode("ascii"),
        base64.urlsafe_b64encode(derived).decode("ascii"),
    )
    return "$".join(components)


def _split_password_hash(stored_hash: str) -> tuple[int, bytes, bytes]:
    try:
        iterations_str, salt_b64, hash_b64 = stored_hash.split("$")
        iterations = int(iterations_str)
        salt = base64.urlsafe_b64decode(salt_b64)
        digest = base64.urlsafe_b64decode(hash_b64)
    except (ValueError, binascii.Error) as exc:
        raise SecurityConfigurationError("Stored password hash is invalid") from exc
    return iterations, salt, digest


def verify_password(password: str, stored_hash: str) -> bool:
    """Verify a password against a stored PBKDF2 hash."""

    if not password or not stored_hash:
        return False
    iterations, salt, digest = _split_password_hash(stored_hash)
    candidate = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    return hmac.compare_digest(candidate, digest)


@lru_cache(maxsize=1)
def _load_jwt_key() -> bytes:
    raw_secret = _read_env_var(AUTH_JWT_SECRET_ENV)
    try:
        return base64.urlsafe_b64decode(raw_secret)
    except (ValueError, binascii.Error):
        return raw_secret.encode("utf-8")


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def _invalid_token() -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")


def _encode_jwt(payload: dict[str, Any], key: bytes) -> str:
    header = {"typ": "JWT", "alg": "HS256"}
    header_b64 = _b64url_encode(json.dumps(header, separators=(",", ":")).encode("utf-8"))
    payload_b64 = _b64url_encode(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
    signing_input = f"{header_b64}.{payload_b64}".encode("ascii")
    signature = hmac.new(key, signing_input, hashlib.sha256).digest()
    return f"{header_b64}.{payload_b64}.{_b64url_encode(signature)}"


def _decode_jwt(token: str, key: bytes) -> dict[str, Any]:
    try:
        header_b64, payload_b64, signature_b64 = token.split(".")
        signature = _b64url_decode(signature_b64)
    except (ValueError, binascii.Error) as exc:
        raise _invalid_token() from exc

    signing_input = f"{header_b64}.{payload_b64}".encode("ascii")
    expected_signature = hmac.new(key, signing_input, hashlib.sha256).digest()
    if not hmac.compare_digest(signature, expected_signature):
        raise _invalid_token()

    try:
        payload_data = json.loads(_b64url_decode(payload_b64).decode("utf-8"))
    except (ValueError, binascii.Error) as exc:
        raise _invalid_token() from exc
    if not isinstance(payload_data, dict) or payload_data.get("exp") is None:
        raise _invalid_token()
    try:
        expires_at = datetime.fromtimestamp(int(payload_data["exp"]), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError) as exc:
        raise _invalid_token() from exc
    if datetime.now(timezone.utc) >= expires_at:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
    return payload_data


def resolve_access_token_expiry() -> timedelta:
    raw = os.getenv(ACCESS_TOKEN_EXPIRE_MINUTES_ENV)
    if not raw:
        return DEFAULT_TOKEN_LIFETIME
    try:
        minutes = int(raw)
    except ValueError as exc:
        raise SecurityConfigurationError("ACCESS_TOKEN_EXPIRE_MINUTES must be an integer") from exc
    if minutes <= 0:
        raise SecurityConfigurationError("ACCESS_TOKEN_EXPIRE_MINUTES must be positive")
    return timedelta(minutes=minutes)


def cookie_is_secure() -> bool:
    raw = os.getenv(AUTH_COOKIE_SECURE_ENV)
    if raw is None:
        return False
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class UserIdentity:
    """The authenticated caller, threaded explicitly into service calls."""

    id: str
    username: str
    role: models.UserRole

    @classmethod
    def from_user(cls, user: models.User) -> "UserIdentity":
        return cls(id=str(user.id), username=user.username, role=models.UserRole(user.role))

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @property
    def must_change_password(self) -> bool:
        return self.role.is_temporary


def create_access_token(identity: UserIdentity) -> str:
    key = _load_jwt_key()
    expiry = datetime.now(timezone.utc) + resolve_access_token_expiry()
    payload: dict[str, Any] = {
        "sub": identity.id,
        "username": identity.username,
        "role": identity.role.value,
        "exp": int(expiry.timestamp()),
    }
    return _encode_jwt(payload, key)


def get_current_user(
    bearer_token: Optional[str] = Depends(oauth2_scheme),
    cookie_token: Optional[str] = Cookie(default=None, alias=AUTH_COOKIE_NAME),
    db: Session = Depends(get_db),
) -> UserIdentity:
    """Resolve the caller from the session cookie or a bearer token."""

    token = bearer_token or cookie_token
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User is not authenticated.",
        )
    payload = _decode_jwt(token, _load_jwt_key())
    user_id = payload.get("sub")
    if not isinstance(user_id, str):
        raise _invalid_token()

    user = (
        db.query(models.User)
        .filter(models.User.id == user_id, models.User.is_deleted.is_(False))
        .one_or_none()
    )
    if user is None:
        raise _invalid_token()
    return UserIdentity.from_user(user)


def require_active_user(identity: UserIdentity = Depends(get_current_user)) -> UserIdentity:
    """Reject callers that still hold a temporary role after a password reset."""

    if identity.must_change_password:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Password change required.")
    return identity


def require_admin(identity: UserIdentity = Depends(require_active_user)) -> UserIdentity:
    """FastAPI dependency that ensures the caller is an admin or superadmin."""

    if not identity.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Administrator role required.")
    return identity
