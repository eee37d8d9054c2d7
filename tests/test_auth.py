# tests/test_auth.py

from datetime import timedelta

from auth import create_access_token


def register(client, email="carol@example.com", password="s3cret!"):
    return client.post("/api/users/register", json={"email": email, "password": password})


def login(client, email="carol@example.com", password="s3cret!"):
    return client.post("/api/users/login", data={"username": email, "password": password})


def test_register_login_and_use_token(client):
    resp = register(client, email="Carol@Example.com")
    assert resp.status_code == 201
    assert resp.json()["email"] == "carol@example.com"
    assert "password" not in resp.text

    resp = login(client)
    assert resp.status_code == 200
    token = resp.json()["access_token"]
    assert resp.json()["token_type"] == "bearer"

    headers = {"Authorization": f"Bearer {token}"}
    assert client.get("/api/users/me", headers=headers).json()["email"] == "carol@example.com"

    resp = client.post("/api/tasks", json={"title": "First", "category": "Work"}, headers=headers)
    assert resp.status_code == 201


def test_password_is_stored_hashed(client, db):
    from models import User

    register(client)
    user = db.query(User).filter(User.email == "carol@example.com").one()
    assert user.password_hash != "s3cret!"
    assert user.password_hash.startswith("$2")


def test_register_rejects_duplicates_and_bad_email(client):
    assert register(client).status_code == 201

    resp = register(client)
    assert resp.status_code == 400
    assert resp.json() == {"message": "Email already exists"}

    assert register(client, email="not-an-email").status_code == 400
    assert register(client, email="dave@example.com", password="").status_code == 400


def test_login_rejects_wrong_password_and_unknown_user(client):
    register(client)

    assert login(client, password="wrong").status_code == 401
    resp = login(client, email="nobody@example.com")
    assert resp.status_code == 401
    assert resp.json() == {"message": "Invalid credentials"}


def test_expired_or_orphaned_tokens_are_rejected(client, alice):
    expired = create_access_token({"sub": alice.email}, expires_delta=timedelta(minutes=-1))
    resp = client.get("/api/users/me", headers={"Authorization": f"Bearer {expired}"})
    assert resp.status_code == 401

    orphan = create_access_token({"sub": "ghost@example.com"})
    resp = client.get("/api/users/me", headers={"Authorization": f"Bearer {orphan}"})
    assert resp.status_code == 401


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
