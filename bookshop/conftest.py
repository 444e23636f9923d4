import os

# Must be set before bookshop.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["STORAGE_BACKEND"] = "local"
os.environ["RESEND_API_KEY"] = ""
os.environ["RESEND_FROM"] = ""

import pytest
from fastapi.testclient import TestClient

from bookshop.database import Base, SessionLocal, engine, get_db
from bookshop.dependencies import get_mailer, get_session_store, get_thumbnail_storage
from bookshop.main import app
from bookshop.storage import LocalThumbnailStorage


class InMemorySessionStore:
    """Stands in for the Redis-backed SessionStore."""

    def __init__(self, ttl_seconds: int = 7 * 24 * 60 * 60):
        self.ttl_seconds = ttl_seconds
        self.entries = {}

    def get(self, user_id):
        return self.entries.get(user_id)

    def set(self, user_id, refresh_token):
        self.entries[user_id] = refresh_token

    def delete(self, user_id):
        self.entries.pop(user_id, None)

    def ping(self):
        return True


class RecordingMailer:
    def __init__(self):
        self.sent = []

    def send(self, to_email, subject, body):
        self.sent.append({"to": to_email, "subject": subject, "body": body})


@pytest.fixture(scope="function")
def setup_database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(setup_database):
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def session_store():
    return InMemorySessionStore()


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def thumbnail_storage(tmp_path):
    return LocalThumbnailStorage(str(tmp_path / "uploads"), "/uploads")


@pytest.fixture(scope="function")
def client(db_session, session_store, mailer, thumbnail_storage):
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_store] = lambda: session_store
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_thumbnail_storage] = lambda: thumbnail_storage
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def register_user(client, username="reader", email="reader@example.com", password="password123"):
    response = client.post(
        "/api/v1/auth/register",
        json={"username": username, "email": email, "password": password},
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


def auth_headers(access_token):
    return {"Authorization": f"Bearer {access_token}"}


@pytest.fixture
def user(client):
    return register_user(client)


@pytest.fixture
def headers(user):
    return auth_headers(user["access_token"])
