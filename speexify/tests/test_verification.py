"""
test_verification.py — Tests for emailed-code registration and password reset.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from speexify.auth import codes
from speexify.auth.codes import NoCode, PendingCode
from speexify.auth.sqlite_db import get_conn
from speexify.tests.conftest import FIXED_CODE, PASSWORD, make_user

EMAIL = "new@example.com"


def _age_code(table: str, email: str, **delta) -> None:
    """Move a stored code's updated_at (and expires_at) back in time."""
    state = codes.CodeStore(table).load(email)
    assert isinstance(state, PendingCode)
    with get_conn() as conn:
        conn.execute(
            f"UPDATE {table} SET updated_at = ?, expires_at = ? WHERE email = ?",
            (
                (state.updated_at - timedelta(**delta)).isoformat(),
                (state.expires_at - timedelta(**delta)).isoformat(),
                email,
            ),
        )
        conn.commit()


# ---------------------------------------------------------------------------
# Code primitives
# ---------------------------------------------------------------------------

class TestCodePrimitives:
    def test_generated_code_is_six_digits(self):
        for _ in range(50):
            code = codes.generate_code()
            assert len(code) == 6
            assert code.isdigit()

    def test_hash_is_not_the_code(self):
        digest = codes.hash_code(EMAIL, "123456")
        assert "123456" not in digest
        assert digest == codes.hash_code(EMAIL, "123456")
        assert digest != codes.hash_code("other@example.com", "123456")

    def test_load_returns_no_code_for_unknown_email(self):
        assert isinstance(codes.registration_codes.load(EMAIL), NoCode)

    def test_save_replaces_and_resets_attempts(self):
        store = codes.registration_codes
        expires = datetime.now(timezone.utc) + timedelta(minutes=10)
        store.save(EMAIL, "a", expires)
        store.record_failed_attempt(EMAIL)
        store.record_failed_attempt(EMAIL)
        assert store.load(EMAIL).attempts == 2

        store.save(EMAIL, "b", expires)
        state = store.load(EMAIL)
        assert state.code_hash == "b"
        assert state.attempts == 0

    def test_unknown_table_rejected(self):
        with pytest.raises(ValueError):
            codes.CodeStore("users")


# ---------------------------------------------------------------------------
# Registration start
# ---------------------------------------------------------------------------

def test_register_start_sends_code(client, sent_codes):
    resp = client.post("/api/auth/register/start", json={"email": " New@Example.com "})
    assert resp.status_code == 200
    assert resp.json() == {"ok": True}
    sent_codes.assert_called_once_with(EMAIL, FIXED_CODE, "register")

    state = codes.registration_codes.load(EMAIL)
    assert isinstance(state, PendingCode)
    assert state.code_hash != FIXED_CODE
    assert state.attempts == 0


def test_register_start_rejects_bad_email(client, sent_codes):
    resp = client.post("/api/auth/register/start", json={"email": "not-an-email"})
    assert resp.status_code == 400
    sent_codes.assert_not_called()


def test_register_start_existing_email_conflicts(client, sent_codes, learner_user):
    resp = client.post("/api/auth/register/start", json={"email": learner_user.email})
    assert resp.status_code == 409
    sent_codes.assert_not_called()


def test_register_resend_inside_cooldown_is_throttled(client, sent_codes):
    client.post("/api/auth/register/start", json={"email": EMAIL})
    before = codes.registration_codes.load(EMAIL)

    resp = client.post("/api/auth/register/start", json={"email": EMAIL})
    assert resp.status_code == 429
    assert resp.json()["error"]["code"] == "RATE_LIMITED"
    assert sent_codes.call_count == 1

    after = codes.registration_codes.load(EMAIL)
    assert after.code_hash == before.code_hash
    assert after.expires_at == before.expires_at


def test_register_resend_after_cooldown_issues_new_code(client, sent_codes):
    client.post("/api/auth/register/start", json={"email": EMAIL})
    _age_code("verification_codes", EMAIL, seconds=61)
    aged = codes.registration_codes.load(EMAIL)

    resp = client.post("/api/auth/register/start", json={"email": EMAIL})
    assert resp.status_code == 200
    assert sent_codes.call_count == 2
    assert codes.registration_codes.load(EMAIL).expires_at > aged.expires_at


def test_register_start_mail_failure_returns_500(client):
    with patch("speexify.core.mailer.send_code", return_value=False):
        resp = client.post("/api/auth/register/start", json={"email": EMAIL})
    assert resp.status_code == 500


# ---------------------------------------------------------------------------
# Registration complete
# ---------------------------------------------------------------------------

def _complete(client, code=FIXED_CODE, **extra):
    body = {"email": EMAIL, "code": code, "password": PASSWORD, "name": "Nia New"}
    body.update(extra)
    return client.post("/api/auth/register/complete", json=body)


def test_register_complete_creates_learner_and_logs_in(client, sent_codes):
    client.post("/api/auth/register/start", json={"email": EMAIL})

    resp = _complete(client)
    assert resp.status_code == 200
    data = resp.json()
    assert data["ok"] is True
    assert data["user"]["email"] == EMAIL
    assert data["user"]["role"] == "learner"
    assert data["user"]["name"] == "Nia New"

    assert isinstance(codes.registration_codes.load(EMAIL), NoCode)
    assert client.get("/api/me").json()["email"] == EMAIL
    # The code was consumed.
    assert _complete(client).status_code in (400, 409)


def test_register_complete_without_pending_code(client):
    resp = _complete(client)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "CODE_NOT_FOUND"


def test_register_complete_rejects_malformed_code(client, sent_codes):
    client.post("/api/auth/register/start", json={"email": EMAIL})
    assert _complete(client, code="12ab56").status_code == 400
    assert _complete(client, code="12345").status_code == 400
    # Malformed codes never count as attempts.
    assert codes.registration_codes.load(EMAIL).attempts == 0


def test_register_complete_rejects_short_password(client, sent_codes):
    client.post("/api/auth/register/start", json={"email": EMAIL})
    assert _complete(client, password="short").status_code == 400


def test_register_complete_wrong_code_counts_attempt(client, sent_codes):
    client.post("/api/auth/register/start", json={"email": EMAIL})
    resp = _complete(client, code="000000")
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "INVALID_CODE"
    assert codes.registration_codes.load(EMAIL).attempts == 1


def test_register_complete_locks_out_after_five_failures(client, sent_codes):
    client.post("/api/auth/register/start", json={"email": EMAIL})
    for _ in range(5):
        assert _complete(client, code="000000").status_code == 400

    resp = _complete(client)
    assert resp.status_code == 429
    assert isinstance(codes.registration_codes.load(EMAIL), NoCode)
    # A fresh start is required even with the right code.
    assert _complete(client).json()["error"]["code"] == "CODE_NOT_FOUND"


def test_register_complete_expired_code(client, sent_codes):
    client.post("/api/auth/register/start", json={"email": EMAIL})
    _age_code("verification_codes", EMAIL, minutes=11)

    resp = _complete(client)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "EXPIRED"
    assert isinstance(codes.registration_codes.load(EMAIL), NoCode)


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------

def test_reset_start_unknown_email_looks_successful(client, sent_codes):
    resp = client.post("/api/auth/password/reset/start", json={"email": "ghost@example.com"})
    assert resp.status_code == 200
    assert resp.json() == {"ok": True}
    sent_codes.assert_not_called()
    assert isinstance(codes.reset_codes.load("ghost@example.com"), NoCode)


def test_reset_start_disabled_account_sends_nothing(client, sent_codes):
    make_user("off@example.com", is_disabled=True)
    resp = client.post("/api/auth/password/reset/start", json={"email": "off@example.com"})
    assert resp.status_code == 200
    sent_codes.assert_not_called()


def test_reset_start_throttled_still_ok(client, sent_codes, learner_user):
    for _ in range(2):
        resp = client.post("/api/auth/password/reset/start", json={"email": learner_user.email})
        assert resp.status_code == 200
    assert sent_codes.call_count == 1


def test_reset_start_mail_failure_still_ok(client, learner_user):
    with patch("speexify.core.mailer.send_code", return_value=False):
        resp = client.post("/api/auth/password/reset/start", json={"email": learner_user.email})
    assert resp.status_code == 200


def test_reset_complete_sets_new_password(client, sent_codes, learner_user):
    client.post("/api/auth/password/reset/start", json={"email": learner_user.email})
    sent_codes.assert_called_once_with(learner_user.email, FIXED_CODE, "reset")

    resp = client.post(
        "/api/auth/password/reset/complete",
        json={"email": learner_user.email, "code": FIXED_CODE, "newPassword": "brand-new-pass"},
    )
    assert resp.status_code == 200
    assert client.get("/api/me").json()["email"] == learner_user.email

    old = client.post("/api/auth/login", json={"email": learner_user.email, "password": PASSWORD})
    assert old.status_code == 401
    new = client.post(
        "/api/auth/login", json={"email": learner_user.email, "password": "brand-new-pass"}
    )
    assert new.status_code == 200


def test_reset_complete_wrong_code(client, sent_codes, learner_user):
    client.post("/api/auth/password/reset/start", json={"email": learner_user.email})
    resp = client.post(
        "/api/auth/password/reset/complete",
        json={"email": learner_user.email, "code": "999999", "newPassword": "brand-new-pass"},
    )
    assert resp.status_code == 400
    assert codes.reset_codes.load(learner_user.email).attempts == 1
