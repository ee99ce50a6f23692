"""
conftest.py — Shared fixtures for all backend tests.
"""
from __future__ import annotations

from typing import Any
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

PASSWORD = "password123"
FIXED_CODE = "123456"

# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def db_path(tmp_path, monkeypatch):
    """Point every test at its own SQLite file and create the schema."""
    from speexify.auth import sqlite_db

    path = str(tmp_path / "speexify-test.db")
    monkeypatch.setattr(sqlite_db, "DB_PATH", path)
    sqlite_db.init_db()
    return path


def make_user(email: str, role: str = "learner", password: str | None = PASSWORD, **fields: Any):
    from speexify.auth.users import create_user, update_user

    user = create_user(email=email, name=fields.pop("name", None), role=role, password=password)
    if fields:
        user = update_user(user.id, **fields)
    return user


@pytest.fixture
def admin_user():
    return make_user("admin@example.com", role="admin", name="Ada Admin")


@pytest.fixture
def learner_user():
    return make_user("learner@example.com", name="Lena Learner")


@pytest.fixture
def other_learner():
    return make_user("other@example.com", name="Otto Other")


@pytest.fixture
def teacher_user():
    return make_user(
        "teacher@example.com", role="teacher", name="Tom Teacher", rate_hourly_cents=3000
    )


# ---------------------------------------------------------------------------
# HTTP clients
# ---------------------------------------------------------------------------

@pytest.fixture
def app():
    from speexify.api.app import create_app
    return create_app()


@pytest.fixture
def client(app):
    return TestClient(app, raise_server_exceptions=False)


def login(client: TestClient, email: str, password: str = PASSWORD) -> TestClient:
    resp = client.post("/api/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return client


@pytest.fixture
def admin_client(app, admin_user):
    return login(TestClient(app, raise_server_exceptions=False), admin_user.email)


@pytest.fixture
def learner_client(app, learner_user):
    return login(TestClient(app, raise_server_exceptions=False), learner_user.email)


@pytest.fixture
def teacher_client(app, teacher_user):
    return login(TestClient(app, raise_server_exceptions=False), teacher_user.email)


# ---------------------------------------------------------------------------
# Mail / codes
# ---------------------------------------------------------------------------

@pytest.fixture
def sent_codes():
    """Capture outgoing codes instead of mailing them; codes are always FIXED_CODE."""
    with patch("speexify.auth.codes.generate_code", return_value=FIXED_CODE), \
         patch("speexify.core.mailer.send_code", return_value=True) as send:
        yield send
