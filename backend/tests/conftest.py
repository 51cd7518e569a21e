from __future__ import annotations

import base64
import os
import sys
from pathlib import Path
from typing import Callable, Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

# Ensure the project root (which exposes the ``backend`` package) is on ``sys.path``
PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ["AUTH_JWT_SECRET"] = base64.urlsafe_b64encode(os.urandom(32)).decode()
os.environ["ACCESS_TOKEN_EXPIRE_MINUTES"] = "60"
os.environ["PASSWORD_HASH_ITERATIONS"] = "1000"
os.environ["RUN_MIGRATIONS_ON_STARTUP"] = "0"
for _name in (
    "DEFAULT_RESET_PASSWORD",
    "BOOTSTRAP_SUPERADMIN_USERNAME",
    "BOOTSTRAP_SUPERADMIN_EMAIL",
    "BOOTSTRAP_SUPERADMIN_PASSWORD_HASH",
):
    os.environ.pop(_name, None)

from backend.app.database import Base, get_db  # noqa: E402
from backend.app.main import app  # noqa: E402
from backend.app import models  # noqa: E402
from backend.app.security import UserIdentity, generate_password_hash  # noqa: E402

SUPERADMIN_USERNAME = "root"
SUPERADMIN_PASSWORD = "Sup3rS3cret!"
DEFAULT_PASSWORD = "Passw0rd!"

SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture(scope="session", autouse=True)
def setup_database() -> Generator[None, None, None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session() -> Generator[Session, None, None]:
    connection = engine.connect()
    transaction = connection.begin()
    session = TestingSessionLocal(bind=connection)
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture
def user_factory(db_session: Session) -> Callable[..., models.User]:
    def _create(
        username: str,
        *,
        role: models.UserRole = models.UserRole.USER,
        password: str = DEFAULT_PASSWORD,
        status: models.UserStatus = models.UserStatus.ACTIVE,
        email: str | None = None,
    ) -> models.User:
        user = models.User(
            first_name=username.title(),
            father_name="Tester",
            email=email or f"{username}@example.com",
            username=username,
            role=role,
            password_hash=generate_password_hash(password),
            status=status,
            is_deleted=False,
            wrong_password_count=0,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _create


@pytest.fixture
def superadmin(user_factory) -> models.User:
    return user_factory(
        SUPERADMIN_USERNAME,
        role=models.UserRole.SUPERADMIN,
        password=SUPERADMIN_PASSWORD,
    )


@pytest.fixture
def actor(superadmin: models.User) -> UserIdentity:
    return UserIdentity.from_user(superadmin)


@pytest.fixture
def port_factory(db_session: Session) -> Callable[..., models.Port]:
    def _create(port_number: int, capacity: int = 2, used: int = 0) -> models.Port:
        port = models.Port(port_number=port_number, port_capacity=capacity, used_ports=used)
        db_session.add(port)
        db_session.commit()
        db_session.refresh(port)
        return port

    return _create


@pytest.fixture
def terminal_payload() -> Callable[..., dict]:
    def _build(suffix: str = "1", **overrides) -> dict:
        payload = {
            "unit_id": f"U-{suffix}",
            "type": "ATM",
            "terminal_id": f"T-{suffix}",
            "terminal_name": f"Branch lobby {suffix}",
            "branch_name": "Central",
            "district": "North",
            "site": "Onsite",
            "cbs_account": f"CBS-{suffix}",
            "port": 5,
            "ip_address": f"10.0.0.{suffix}",
        }
        payload.update(overrides)
        return payload

    return _build


@pytest.fixture
def client(db_session: Session, superadmin: models.User) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        try:
            yield db_session
        finally:
            db_session.expire_all()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        response = test_client.post(
            "/login",
            json={"username": SUPERADMIN_USERNAME, "password": SUPERADMIN_PASSWORD},
        )
        assert response.status_code == 200
        token = response.json()["token"]
        test_client.cookies.clear()
        test_client.headers.update({"Authorization": f"Bearer {token}"})
        yield test_client
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def login(client: TestClient) -> Callable[[str, str], dict]:
    """Return a helper that logs a user in and yields their auth headers."""

    def _login(username: str, password: str = DEFAULT_PASSWORD) -> dict:
        response = client.post("/login", json={"username": username, "password": password})
        assert response.status_code == 200, response.json()
        client.cookies.clear()
        return {"Authorization": f"Bearer {response.json()['token']}"}

    return _login
