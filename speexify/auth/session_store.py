"""
auth/session_store.py — Server-side authentication sessions.

The cookie carries only a signed, opaque session id; who is logged in (and
who an admin is currently viewing as) lives in the ``auth_sessions`` table.
"""
from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from ..core.config import SESSION_SECRET, SESSION_TTL_HOURS
from .models import AuthSession
from .sqlite_db import get_conn

_TTL_SECONDS = SESSION_TTL_HOURS * 3600


class SessionStore:
    """Keyed store of authentication sessions: create, get, set, destroy."""

    def __init__(self, secret: str = SESSION_SECRET):
        self._serializer = URLSafeTimedSerializer(secret, salt="session")

    def create(self, user_id: int) -> str:
        """Persist a new session for ``user_id``; return the signed cookie value."""
        raw_id = secrets.token_hex(32)
        now = datetime.now(timezone.utc)
        with get_conn() as conn:
            conn.execute(
                """
                INSERT INTO auth_sessions (session_id, user_id, created_at, expires_at)
                VALUES (?, ?, ?, ?)
                """,
                (
                    raw_id,
                    user_id,
                    now.isoformat(),
                    (now + timedelta(seconds=_TTL_SECONDS)).isoformat(),
                ),
            )
            conn.commit()
        return self._serializer.dumps(raw_id)

    def session_id_from_token(self, signed_token: str) -> Optional[str]:
        try:
            return self._serializer.loads(signed_token, max_age=_TTL_SECONDS)
        except (BadSignature, SignatureExpired):
            return None

    def get(self, signed_token: str) -> Optional[AuthSession]:
        """Return the live session for a cookie value, or None."""
        raw_id = self.session_id_from_token(signed_token)
        if not raw_id:
            return None
        with get_conn() as conn:
            row = conn.execute(
                "SELECT * FROM auth_sessions WHERE session_id = ? AND expires_at > ?",
                (raw_id, datetime.now(timezone.utc).isoformat()),
            ).fetchone()
        return AuthSession.from_row(row) if row else None

    def set_view_as(self, session_id: str, user_id: Optional[int]) -> None:
        with get_conn() as conn:
            conn.execute(
                "UPDATE auth_sessions SET view_as_user_id = ? WHERE session_id = ?",
                (user_id, session_id),
            )
            conn.commit()

    def destroy(self, session_id: str) -> None:
        with get_conn() as conn:
            conn.execute("DELETE FROM auth_sessions WHERE session_id = ?", (session_id,))
            conn.commit()

    def destroy_for_user(self, user_id: int) -> None:
        """Log a user out everywhere (used when an account is disabled)."""
        with get_conn() as conn:
            conn.execute("DELETE FROM auth_sessions WHERE user_id = ?", (user_id,))
            conn.commit()


session_store = SessionStore()
