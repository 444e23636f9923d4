from datetime import datetime, timedelta

from bookshop import auth, models
from bookshop.conftest import auth_headers, register_user


def login(client, identifier, password="password123"):
    return client.post("/api/v1/auth/login", json={"login": identifier, "password": password})


def test_register(client, db_session, session_store):
    data = register_user(client)

    assert data["user"]["email"] == "reader@example.com"
    assert data["user"]["username"] == "reader"
    assert "password" not in data["user"]
    assert data["access_token"]
    assert data["refresh_token"]
    assert session_store.get(data["user"]["id"]) == data["refresh_token"]
    assert db_session.query(models.User).count() == 1


def test_register_duplicate_email_or_username_conflicts(client, db_session, session_store):
    register_user(client)
    session_store.entries.clear()

    for payload in (
        {"username": "someone", "email": "reader@example.com", "password": "password123"},
        {"username": "reader", "email": "other@example.com", "password": "password123"},
    ):
        response = client.post("/api/v1/auth/register", json=payload)
        assert response.status_code == 409
        assert response.json() == {"success": False, "error": "User already exists"}

    assert db_session.query(models.User).count() == 1
    assert session_store.entries == {}


def test_register_validation_errors(client):
    response = client.post(
        "/api/v1/auth/register",
        json={"username": "ab", "email": "not-an-email", "password": "123"},
    )
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    fields = {error["loc"][-1] for error in body["errors"]}
    assert {"username", "email", "password"} <= fields


def test_login_with_email_or_username(client, session_store):
    user = register_user(client)

    for identifier in ("reader@example.com", "reader"):
        response = login(client, identifier)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["user"]["id"] == user["user"]["id"]
        assert "password" not in data["user"]
        assert session_store.get(user["user"]["id"]) == data["refresh_token"]


def test_register_rejects_email_shaped_username(client, db_session):
    register_user(client, username="bob", email="bob@example.com", password="password-b")

    response = client.post(
        "/api/v1/auth/register",
        json={"username": "bob@example.com", "email": "alice@example.com", "password": "password-a"},
    )
    assert response.status_code == 400
    assert db_session.query(models.User).count() == 1

    login_response = login(client, "bob@example.com", password="password-b")
    assert login_response.status_code == 200
    assert login_response.json()["data"]["user"]["username"] == "bob"


def test_login_email_domain_is_case_insensitive(client):
    user = register_user(client, email="Reader@Example.COM")
    assert user["user"]["email"] == "Reader@example.com"

    response = login(client, "Reader@EXAMPLE.com")
    assert response.status_code == 200
    assert response.json()["data"]["user"]["id"] == user["user"]["id"]

    # the local part is kept as registered
    assert login(client, "reader@example.com").status_code == 401


def test_login_failures_are_indistinguishable(client):
    register_user(client)

    unknown = login(client, "nobody@example.com")
    wrong_password = login(client, "reader", password="wrong-password")

    assert unknown.status_code == wrong_password.status_code == 401
    assert unknown.json() == wrong_password.json() == {"success": False, "error": "Invalid credentials"}


def test_refresh_rotates_token(client, session_store):
    user = register_user(client)
    old_refresh = user["refresh_token"]

    response = client.post("/api/v1/auth/refresh", json={"refresh_token": old_refresh})
    assert response.status_code == 200
    new_refresh = response.json()["data"]["refresh_token"]
    assert new_refresh != old_refresh
    assert session_store.get(user["user"]["id"]) == new_refresh

    stale = client.post("/api/v1/auth/refresh", json={"refresh_token": old_refresh})
    assert stale.status_code == 401
    assert stale.json()["success"] is False


def test_refresh_rejects_access_token_and_garbage(client):
    user = register_user(client)

    for token in (user["access_token"], "not-a-token"):
        response = client.post("/api/v1/auth/refresh", json={"refresh_token": token})
        assert response.status_code == 401


def test_logout_ends_session(client, session_store):
    user = register_user(client)
    headers = auth_headers(user["access_token"])
    assert client.get("/api/v1/users/profile", headers=headers).status_code == 200

    response = client.post("/api/v1/auth/logout", json={"refresh_token": user["refresh_token"]})
    assert response.status_code == 200
    assert session_store.get(user["user"]["id"]) is None

    # access tokens die with the session
    assert client.get("/api/v1/users/profile", headers=headers).status_code == 401
    refresh = client.post("/api/v1/auth/refresh", json={"refresh_token": user["refresh_token"]})
    assert refresh.status_code == 401


def test_logout_with_invalid_token(client):
    response = client.post("/api/v1/auth/logout", json={"refresh_token": "bogus"})
    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Invalid refresh token"}


def test_protected_route_requires_bearer_token(client):
    response = client.get("/api/v1/users/profile")
    assert response.status_code == 401
    assert response.json()["success"] is False

    response = client.get("/api/v1/users/profile", headers=auth_headers("garbage"))
    assert response.status_code == 401


def test_forgot_password_sends_code(client, db_session, mailer):
    register_user(client)

    response = client.post("/api/v1/auth/forgot-password", json={"email": "reader@example.com"})
    assert response.status_code == 200

    user = db_session.query(models.User).filter_by(email="reader@example.com").one()
    assert user.reset_code_hash
    assert user.reset_code_expires_at > datetime.utcnow()
    assert len(mailer.sent) == 1
    assert mailer.sent[0]["to"] == "reader@example.com"


def test_forgot_password_unknown_email(client, mailer):
    response = client.post("/api/v1/auth/forgot-password", json={"email": "ghost@example.com"})
    assert response.status_code == 404
    assert mailer.sent == []


def _issue_code(db_session, email, code="123456", expires_in=timedelta(minutes=15)):
    user = db_session.query(models.User).filter_by(email=email).one()
    user.reset_code_hash = auth.hash_token(code)
    user.reset_code_expires_at = datetime.utcnow() + expires_in
    db_session.commit()


def _reset(client, code, email="reader@example.com", password="newpassword1"):
    return client.post(
        "/api/v1/auth/reset-password",
        json={
            "email": email,
            "otp": code,
            "new_password": password,
            "confirm_password": password,
        },
    )


def test_reset_password_flow(client, db_session):
    register_user(client)
    _issue_code(db_session, "reader@example.com")

    response = _reset(client, "123456")
    assert response.status_code == 200

    db_session.expire_all()
    user = db_session.query(models.User).filter_by(email="reader@example.com").one()
    assert user.reset_code_hash is None
    assert login(client, "reader", password="newpassword1").status_code == 200
    assert login(client, "reader", password="password123").status_code == 401

    # the code is single use
    again = _reset(client, "123456", password="another-pass")
    assert again.status_code in (400, 412)


def test_reset_password_without_request(client):
    register_user(client)
    response = _reset(client, "123456")
    assert response.status_code == 412


def test_reset_password_wrong_code(client, db_session):
    register_user(client)
    _issue_code(db_session, "reader@example.com")

    response = _reset(client, "654321")
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid or expired code"
    assert login(client, "reader").status_code == 200


def test_reset_password_expired_code(client, db_session):
    register_user(client)
    _issue_code(db_session, "reader@example.com", expires_in=timedelta(minutes=-1))

    assert _reset(client, "123456").status_code == 400


def test_reset_password_unknown_user(client):
    assert _reset(client, "123456", email="ghost@example.com").status_code == 404


def test_reset_password_mismatched_confirmation(client, db_session):
    register_user(client)
    _issue_code(db_session, "reader@example.com")

    response = client.post(
        "/api/v1/auth/reset-password",
        json={
            "email": "reader@example.com",
            "otp": "123456",
            "new_password": "newpassword1",
            "confirm_password": "different1",
        },
    )
    assert response.status_code == 400
