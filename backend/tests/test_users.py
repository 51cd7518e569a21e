import pytest
from fastapi.testclient import TestClient

from backend.app import models
from backend.app.main import app
from backend.app.services.users import BAD_CREDENTIALS_MESSAGE, LOCKED_MESSAGE


def _user_payload(username="jdoe", email="jdoe@example.com", **overrides):
    payload = {
        "first_name": "John",
        "father_name": "Doe",
        "grandfather_name": "Smith",
        "email": email,
        "department": "Operations",
        "role": "user",
        "username": username,
        "password": "Init1alPass",
    }
    payload.update(overrides)
    return payload


def _activity_actions(db_session, user_id):
    db_session.expire_all()
    return [
        entry.action
        for entry in db_session.query(models.UserActivity).filter_by(user_id=user_id).all()
    ]


def test_create_user_hides_password_and_logs_activity(client, db_session, superadmin):
    response = client.post("/users", json=_user_payload())

    assert response.status_code == 201, response.json()
    body = response.json()
    assert body["message"] == "User created successfully."
    user = body["user"]
    assert user["status"] == "New"
    assert user["email"] == "jdoe@example.com"
    assert user["created_by"] == superadmin.id
    assert "password" not in user and "password_hash" not in user
    assert models.UserActivityAction.CREATE_RECORD in _activity_actions(db_session, user["id"])


@pytest.mark.parametrize(
    "payload, message",
    [
        (_user_payload(username="other"), "Email already in use"),
        (_user_payload(email="other@example.com"), "Username already in use"),
    ],
)
def test_create_user_rejects_taken_identifiers(client, payload, message):
    assert client.post("/users", json=_user_payload()).status_code == 201

    response = client.post("/users", json=payload)

    assert response.status_code == 409
    assert response.json()["detail"] == message


def test_deleted_user_is_reactivated_by_email(client, db_session):
    original = client.post("/users", json=_user_payload()).json()["user"]
    assert client.delete(f"/users/{original['id']}").status_code == 200

    response = client.post(
        "/users",
        json=_user_payload(username="jdoe2", first_name="Johnny", password="An0therPass"),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "User reactivated successfully."
    assert body["user"]["id"] == original["id"]
    assert body["user"]["username"] == "jdoe2"
    assert body["user"]["first_name"] == "Johnny"
    assert body["user"]["status"] == "New"
    assert body["user"]["is_deleted"] is False
    assert models.UserActivityAction.REACTIVATE_USER in _activity_actions(db_session, original["id"])


def test_deleted_user_keeps_username_reserved(client):
    original = client.post("/users", json=_user_payload()).json()["user"]
    client.delete(f"/users/{original['id']}")

    response = client.post("/users", json=_user_payload(email="fresh@example.com"))

    assert response.status_code == 409
    assert response.json()["detail"] == "Username already in use"


def test_temporary_roles_cannot_be_assigned_directly(client):
    response = client.post("/users", json=_user_payload(role="tempo_admin"))

    assert response.status_code == 422


def test_only_superadmin_grants_superadmin(client, login, user_factory):
    user_factory("manager", role=models.UserRole.ADMIN)
    headers = login("manager")

    response = client.post("/users", json=_user_payload(role="superadmin"), headers=headers)
    assert response.status_code == 403

    allowed = client.post("/users", json=_user_payload(role="admin"), headers=headers)
    assert allowed.status_code == 201


def test_user_administration_requires_admin(client, login, user_factory):
    user_factory("teller")
    headers = login("teller")

    assert client.get("/users", headers=headers).status_code == 403
    assert client.post("/users", json=_user_payload(), headers=headers).status_code == 403


def test_list_users_excludes_deleted(client, user_factory):
    kept = user_factory("kept")
    removed = user_factory("removed")
    client.delete(f"/users/{removed.id}")

    response = client.get("/users")

    assert response.status_code == 200
    usernames = {user["username"] for user in response.json()["users"]}
    assert kept.username in usernames
    assert removed.username not in usernames


def test_superadmin_cannot_be_deleted(client, superadmin):
    response = client.delete(f"/users/{superadmin.id}")

    assert response.status_code == 403
    assert response.json()["detail"] == "Superadmin cannot be deleted."


def test_delete_unknown_user_returns_404(client):
    assert client.delete("/users/00000000-0000-0000-0000-000000000000").status_code == 404


def test_profile_and_role_describe_the_caller(client, superadmin):
    profile = client.get("/users/profile")
    assert profile.status_code == 200
    assert profile.json()["user"]["username"] == superadmin.username

    role = client.get("/users/role")
    assert role.json() == {"status": "true", "role": "superadmin"}


def test_login_sets_cookie_and_token_header(client, user_factory):
    user_factory("teller")

    response = client.post("/login", json={"username": "teller", "password": "Passw0rd!"})

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "User logged in successfully"
    assert body["data"]["username"] == "teller"
    assert response.headers["token"] == body["token"]
    cookie = response.headers["set-cookie"]
    assert cookie.startswith("jwt=")
    assert "HttpOnly" in cookie


def test_session_cookie_authenticates_requests(client, user_factory):
    user_factory("teller")
    browser = TestClient(app)

    assert browser.post("/login", json={"username": "teller", "password": "Passw0rd!"}).status_code == 200
    response = browser.get("/users/role")

    assert response.status_code == 200
    assert response.json()["role"] == "user"


def test_unknown_user_cannot_login(client):
    response = client.post("/login", json={"username": "ghost", "password": "whatever1"})

    assert response.status_code == 401
    assert response.json()["detail"] == BAD_CREDENTIALS_MESSAGE


def test_fifth_wrong_password_locks_account(client, db_session, user_factory):
    user = user_factory("teller")

    for remaining in (4, 3, 2, 1):
        response = client.post("/login", json={"username": "teller", "password": "wrong-pass"})
        assert response.status_code == 401
        assert response.json()["detail"] == f"Wrong password! You are left with {remaining} tries."

    fifth = client.post("/login", json={"username": "teller", "password": "wrong-pass"})
    assert fifth.status_code == 401
    assert fifth.json()["detail"] == LOCKED_MESSAGE

    correct = client.post("/login", json={"username": "teller", "password": "Passw0rd!"})
    assert correct.status_code == 401
    assert correct.json()["detail"] == LOCKED_MESSAGE

    db_session.expire_all()
    assert db_session.get(models.User, user.id).wrong_password_count == 5

    unlock = client.post(f"/users/{user.id}/reset-count")
    assert unlock.status_code == 200
    assert unlock.json()["user"]["wrong_password_count"] == 0

    again = client.post("/login", json={"username": "teller", "password": "Passw0rd!"})
    assert again.status_code == 200


def test_successful_login_resets_failure_counter(client, db_session, user_factory):
    user = user_factory("teller")
    client.post("/login", json={"username": "teller", "password": "wrong-pass"})
    client.post("/login", json={"username": "teller", "password": "wrong-pass"})

    assert client.post("/login", json={"username": "teller", "password": "Passw0rd!"}).status_code == 200

    db_session.expire_all()
    assert db_session.get(models.User, user.id).wrong_password_count == 0
    actions = _activity_actions(db_session, user.id)
    assert actions.count(models.UserActivityAction.LOGIN_FAILED) == 2
    assert models.UserActivityAction.LOGIN in actions


def test_reset_password_requires_change_before_use(client, login, user_factory):
    user = user_factory("teller")

    reset = client.post(f"/users/{user.id}/reset-password")
    assert reset.status_code == 200
    assert reset.json()["user"]["role"] == "tempo_user"
    assert reset.json()["user"]["status"] == "New"

    headers = login("teller", "12341234")
    blocked = client.get("/terminals", headers=headers)
    assert blocked.status_code == 403
    assert blocked.json()["detail"] == "Password change required."
    assert client.get("/users/role", headers=headers).json()["role"] == "tempo_user"

    mismatch = client.post(
        "/forgot-password",
        json={"password": "12341234", "new_password": "Fresh-Pass1", "confirm_new_password": "Fresh-Pass2"},
        headers=headers,
    )
    assert mismatch.status_code == 400
    assert mismatch.json()["detail"] == "New passwords do not match"

    wrong_current = client.post(
        "/forgot-password",
        json={"password": "nope-nope", "new_password": "Fresh-Pass1", "confirm_new_password": "Fresh-Pass1"},
        headers=headers,
    )
    assert wrong_current.status_code == 400
    assert wrong_current.json()["detail"] == "Incorrect current password"

    changed = client.post(
        "/forgot-password",
        json={"password": "12341234", "new_password": "Fresh-Pass1", "confirm_new_password": "Fresh-Pass1"},
        headers=headers,
    )
    assert changed.status_code == 200
    assert changed.json()["user"]["role"] == "user"
    assert changed.json()["user"]["status"] == "Active"

    assert client.get("/terminals", headers=headers).status_code == 200
    assert login("teller", "Fresh-Pass1")


def test_password_change_restores_original_role_without_escalation(client, login, user_factory):
    user = user_factory("manager", role=models.UserRole.ADMIN)
    client.post(f"/users/{user.id}/reset-password")
    headers = login("manager", "12341234")

    response = client.post(
        "/forgot-password",
        json={"password": "12341234", "new_password": "Fresh-Pass1", "confirm_new_password": "Fresh-Pass1"},
        headers=headers,
    )

    assert response.status_code == 200
    assert response.json()["user"]["role"] == "admin"


def test_logout_clears_session_cookie(client, db_session, superadmin):
    response = client.post("/logout")

    assert response.status_code == 200
    assert response.json()["message"] == "User logged out successfully."
    assert response.headers["set-cookie"].startswith('jwt=""') or response.headers[
        "set-cookie"
    ].startswith("jwt=;")
    assert models.UserActivityAction.LOGOUT in _activity_actions(db_session, superadmin.id)


def test_deleted_user_token_is_rejected(client, login, user_factory):
    user = user_factory("teller")
    headers = login("teller")
    client.delete(f"/users/{user.id}")

    response = client.get("/users/role", headers=headers)

    assert response.status_code == 401


def test_malformed_token_is_rejected(client):
    response = client.get("/users/role", headers={"Authorization": "Bearer not-a-token"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid token"
