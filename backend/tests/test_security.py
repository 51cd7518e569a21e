from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException

from backend.app import models
from backend.app import security
from backend.app.security import (
    SecurityConfigurationError,
    UserIdentity,
    create_access_token,
    generate_password_hash,
    verify_password,
)


def test_password_hash_round_trip():
    stored = generate_password_hash("Corr3ct-Horse")

    assert stored.count("$") == 2
    assert verify_password("Corr3ct-Horse", stored)
    assert not verify_password("corr3ct-horse", stored)
    assert not verify_password("", stored)


def test_password_hashes_are_salted():
    assert generate_password_hash("same-password") != generate_password_hash("same-password")


def test_hash_iterations_follow_environment(monkeypatch):
    monkeypatch.setenv("PASSWORD_HASH_ITERATIONS", "1234")

    assert generate_password_hash("whatever1").startswith("1234$")

    monkeypatch.setenv("PASSWORD_HASH_ITERATIONS", "-1")
    with pytest.raises(SecurityConfigurationError):
        generate_password_hash("whatever1")


def test_access_token_carries_identity():
    identity = UserIdentity(id="abc", username="root", role=models.UserRole.SUPERADMIN)

    payload = security._decode_jwt(create_access_token(identity), security._load_jwt_key())

    assert payload["sub"] == "abc"
    assert payload["username"] == "root"
    assert payload["role"] == "superadmin"


def test_tampered_token_is_rejected():
    identity = UserIdentity(id="abc", username="root", role=models.UserRole.USER)
    header, payload, signature = create_access_token(identity).split(".")
    forged = ".".join([header, payload, signature[::-1]])

    with pytest.raises(HTTPException) as excinfo:
        security._decode_jwt(forged, security._load_jwt_key())

    assert excinfo.value.status_code == 401


def test_expired_token_is_rejected():
    past = datetime.now(timezone.utc) - timedelta(minutes=5)
    token = security._encode_jwt({"sub": "abc", "exp": int(past.timestamp())}, security._load_jwt_key())

    with pytest.raises(HTTPException) as excinfo:
        security._decode_jwt(token, security._load_jwt_key())

    assert excinfo.value.detail == "Token expired"


@pytest.mark.parametrize("exp", ["tomorrow", [1], 10**30])
def test_malformed_expiry_is_an_invalid_token(exp):
    token = security._encode_jwt({"sub": "abc", "exp": exp}, security._load_jwt_key())

    with pytest.raises(HTTPException) as excinfo:
        security._decode_jwt(token, security._load_jwt_key())

    assert excinfo.value.status_code == 401
    assert excinfo.value.detail == "Invalid token"


def test_missing_jwt_secret_is_a_configuration_error(monkeypatch):
    monkeypatch.delenv("AUTH_JWT_SECRET", raising=False)
    security._load_jwt_key.cache_clear()
    try:
        with pytest.raises(SecurityConfigurationError):
            security._load_jwt_key()
    finally:
        monkeypatch.undo()
        security._load_jwt_key.cache_clear()


def test_token_lifetime_defaults_to_one_day(monkeypatch):
    monkeypatch.delenv("ACCESS_TOKEN_EXPIRE_MINUTES", raising=False)
    assert security.resolve_access_token_expiry() == timedelta(days=1)

    monkeypatch.setenv("ACCESS_TOKEN_EXPIRE_MINUTES", "15")
    assert security.resolve_access_token_expiry() == timedelta(minutes=15)


def test_temporary_role_mapping():
    assert models.UserRole.ADMIN.as_temporary() is models.UserRole.TEMPO_ADMIN
    assert models.UserRole.TEMPO_SUPERADMIN.as_permanent() is models.UserRole.SUPERADMIN
    assert models.UserRole.TEMPO_USER.as_permanent() is models.UserRole.USER
    assert models.UserRole.USER.as_permanent() is models.UserRole.USER
    assert models.UserRole.TEMPO_USER.is_temporary
    assert not models.UserRole.ADMIN.is_temporary
