"""Pytest configuration and fixtures."""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from email_platform.core.config import Settings
from email_platform.main import create_app
from email_platform.models import utcnow

PASSWORD = "Sup3r-secret!"


def make_settings(tmp_path, **overrides) -> Settings:
    """Settings isolated from the environment, backed by a SQLite file."""
    values = {
        "DATABASE_URL": f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        "JWT_SECRET": "test-secret",
        "BCRYPT_ROUNDS": 4,
        "LOG_LEVEL": "WARNING",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    """Test client with the lifespan running (tables created)."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def db(client, tmp_path):
    """Synchronous session on the same database file, for seeding and inspection."""
    engine = create_engine(f"sqlite:///{tmp_path / 'test.db'}")
    with Session(engine) as session:
        yield session
    engine.dispose()


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def register(client, email="admin@example.com", organization="Acme Mail"):
    response = client.post(
        "/api/auth/register",
        json={
            "organizationName": organization,
            "email": email,
            "password": PASSWORD,
            "firstName": "Ada",
            "lastName": "Admin",
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


def add_member(client, headers, email, role="user"):
    """Invite ``email`` with ``role``, accept the invitation and log in."""
    invite = client.post("/api/users/invite", json={"email": email, "role": role}, headers=headers)
    assert invite.status_code == 201, invite.text

    accept = client.post(
        "/api/users/accept-invitation",
        json={
            "token": invite.json()["invitationToken"],
            "password": PASSWORD,
            "firstName": "Max",
            "lastName": "Member",
        },
    )
    assert accept.status_code == 200, accept.text

    login = client.post("/api/auth/login", json={"email": email, "password": PASSWORD})
    assert login.status_code == 200, login.text
    return login.json()


@pytest.fixture
def admin(client):
    """Registered admin: ``{"token", "user", "headers"}``."""
    data = register(client)
    data["headers"] = auth_headers(data["token"])
    return data


@pytest.fixture
def manager(client, admin):
    data = add_member(client, admin["headers"], "manager@example.com", role="manager")
    data["headers"] = auth_headers(data["token"])
    return data


@pytest.fixture
def member(client, admin):
    data = add_member(client, admin["headers"], "member@example.com", role="user")
    data["headers"] = auth_headers(data["token"])
    return data


@pytest.fixture
def other_admin(client):
    """Admin of a second, unrelated organization."""
    data = register(client, email="rival@example.com", organization="Rival Inc")
    data["headers"] = auth_headers(data["token"])
    return data


def days_ago(days: int):
    return utcnow() - timedelta(days=days)
