"""
core/verification.py — Emailed one-time codes for registration and password reset.

Each email moves through NONE -> CODE_PENDING -> (CONSUMED | EXPIRED | EXHAUSTED).
Every terminal path deletes the stored row, so a table never holds more than
one row per in-flight email.
"""
from __future__ import annotations

import logging
import re
import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Optional

from ..auth import codes
from ..auth.codes import CodeStore, NoCode, PendingCode
from ..auth.models import User
from ..auth.users import create_user, get_user_by_email, normalize_email, set_password
from . import mailer
from .config import (
    CODE_LENGTH,
    CODE_MAX_ATTEMPTS,
    CODE_RESEND_COOLDOWN_SECONDS,
    CODE_TTL_MINUTES,
    PASSWORD_MIN_LENGTH,
)
from .errors import Conflict, Forbidden, Internal, InvalidInput, RateLimited

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_CODE_RE = re.compile(rf"^\d{{{CODE_LENGTH}}}$")


def validate_email(raw: Optional[str]) -> str:
    email = normalize_email(raw)
    if not _EMAIL_RE.match(email):
        raise InvalidInput("A valid email is required")
    return email


def validate_password(password: Optional[str], field: str = "Password") -> str:
    if not password or len(password) < PASSWORD_MIN_LENGTH:
        raise InvalidInput(f"{field} must be at least {PASSWORD_MIN_LENGTH} characters")
    return password


def _validate_code(code: Optional[str]) -> str:
    code = (code or "").strip()
    if not _CODE_RE.match(code):
        raise InvalidInput(f"Code must be exactly {CODE_LENGTH} digits")
    return code


class VerificationFlow:
    """One code-verification protocol bound to a code table and mail template."""

    def __init__(self, store: CodeStore, purpose: str):
        self.store = store
        self.purpose = purpose

    def issue(self, email: str) -> bool:
        """
        Store and mail a fresh code. Returns False (and leaves the pending code
        untouched) while the previous code is still inside the resend cooldown.
        """
        now = datetime.now(timezone.utc)
        state = self.store.load(email)
        if isinstance(state, PendingCode):
            if now - state.updated_at < timedelta(seconds=CODE_RESEND_COOLDOWN_SECONDS):
                logger.info("%s code for %s throttled (cooldown)", self.purpose, email)
                return False

        code = codes.generate_code()
        self.store.save(
            email,
            codes.hash_code(email, code),
            now + timedelta(minutes=CODE_TTL_MINUTES),
        )
        if not mailer.send_code(email, code, self.purpose):
            raise Internal("Could not send the verification email")
        return True

    def consume(self, email: str, code: str) -> None:
        """Check ``code`` against the pending one; raises unless it matches."""
        state = self.store.load(email)
        if isinstance(state, NoCode):
            raise InvalidInput(
                "No pending code for this email. Please request a new one.",
                code="CODE_NOT_FOUND",
            )
        if state.is_expired(datetime.now(timezone.utc)):
            self.store.delete(email)
            raise InvalidInput("Code expired. Please request a new one.", code="EXPIRED")
        if state.attempts >= CODE_MAX_ATTEMPTS:
            self.store.delete(email)
            raise RateLimited("Too many attempts. Please request a new code.")
        if not codes.code_matches(state, email, code):
            self.store.record_failed_attempt(email)
            raise InvalidInput("Invalid code", code="INVALID_CODE")
        self.store.delete(email)


registration_flow = VerificationFlow(codes.registration_codes, "register")
reset_flow = VerificationFlow(codes.reset_codes, "reset")


# ── Registration ──────────────────────────────────────────────────────────────

def start_registration(raw_email: Optional[str]) -> None:
    email = validate_email(raw_email)
    if get_user_by_email(email):
        raise Conflict("Email already registered")
    if not registration_flow.issue(email):
        raise RateLimited("Please wait a minute before requesting another code.")


def complete_registration(
    raw_email: Optional[str],
    code: Optional[str],
    password: Optional[str],
    name: Optional[str] = None,
) -> User:
    email = validate_email(raw_email)
    code = _validate_code(code)
    validate_password(password)
    registration_flow.consume(email, code)
    try:
        return create_user(
            email=email,
            name=(name or "").strip() or None,
            role="learner",
            password=password,
        )
    except sqlite3.IntegrityError:
        raise Conflict("Email already registered")


# ── Password reset ────────────────────────────────────────────────────────────

def start_password_reset(raw_email: Optional[str]) -> None:
    """
    Every outcome for a well-formed email looks the same to the caller:
    unknown account, disabled account, cooldown, mail failure and success.
    """
    email = validate_email(raw_email)
    user = get_user_by_email(email)
    if not user or user.is_disabled:
        logger.info("password reset requested for unknown or disabled email")
        return
    try:
        reset_flow.issue(email)
    except Internal:
        logger.error("password reset code for user_id=%s was not delivered", user.id)


def complete_password_reset(
    raw_email: Optional[str],
    code: Optional[str],
    new_password: Optional[str],
) -> User:
    email = validate_email(raw_email)
    code = _validate_code(code)
    validate_password(new_password)
    reset_flow.consume(email, code)
    user = get_user_by_email(email)
    if not user:
        raise InvalidInput("Invalid code", code="INVALID_CODE")
    if user.is_disabled:
        raise Forbidden("Account disabled")
    set_password(user.id, new_password)  # type: ignore[arg-type]
    return user
