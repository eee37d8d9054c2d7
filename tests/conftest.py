# tests/conftest.py

import os

# must be set before the app modules read their config
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["BCRYPT_ROUNDS"] = "4"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from auth import create_access_token
from database import Base, get_db
from main import app
from models import User


@pytest.fixture()
def engine():
    """In-memory SQLite shared by every session of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def make_user(db, email: str) -> User:
    # token-only users; login tests register through the API instead
    user = User(email=email, password_hash="not-a-real-hash")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': user.email})}"}


@pytest.fixture()
def alice(db) -> User:
    return make_user(db, "alice@example.com")


@pytest.fixture()
def bob(db) -> User:
    return make_user(db, "bob@example.com")


@pytest.fixture()
def alice_headers(alice) -> dict:
    return auth_headers(alice)


@pytest.fixture()
def bob_headers(bob) -> dict:
    return auth_headers(bob)


@pytest.fixture()
def create_task(client):
    """Create a task through the API and return its JSON."""

    def _create(headers: dict, **fields) -> dict:
        body = {"title": "Buy milk", "category": "Personal"}
        body.update(fields)
        resp = client.post("/api/tasks", json=body, headers=headers)
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _create
