import os

os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["JWT_SECRET"] = "test-secret"
os.environ.pop("SMTP_USER", None)
os.environ.pop("GEMINI_API_KEY", None)

import mongomock
import pymongo

# database.py builds its client at import time
pymongo.MongoClient = mongomock.MongoClient

import pytest
from fastapi.testclient import TestClient

import database
import mailer
import main
from schemas import User
from security import hash_password

PASSWORD = "Secret#1"


@pytest.fixture(autouse=True)
def clean_db():
    yield
    for name in database.db.list_collection_names():
        database.db.drop_collection(name)


@pytest.fixture
def client():
    with TestClient(main.app) as c:
        yield c


@pytest.fixture
def outbox(monkeypatch):
    sent = []

    def fake_send(to, name, otp):
        sent.append({"to": to, "name": name, "otp": otp})
        return True

    monkeypatch.setattr(mailer, "send_otp_email", fake_send)
    return sent


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_user(client):
    """Insert a verified credentials user and return auth headers for it."""

    def _make(email="alice@example.com", name="Alice Smith", password=PASSWORD, **extra):
        fields = dict(
            email=email,
            name=name,
            password=hash_password(password),
            is_email_verified=True,
            account_status="active",
        )
        fields.update(extra)
        database.create_document("users", User(**fields))
        r = client.post("/api/auth/login", json={"email": email, "password": password})
        assert r.status_code == 200, r.text
        return auth_headers(r.json()["access_token"])

    return _make
