"""
auth/users.py — User CRUD and password helpers.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from .models import User
from .sqlite_db import get_conn, like_needle

# Columns an admin (or the user, for name/timezone) may change.
_UPDATABLE = {
    "name",
    "role",
    "timezone",
    "is_disabled",
    "rate_hourly_cents",
    "rate_per_session_cents",
}


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def get_user_by_id(user_id: int) -> Optional[User]:
    with get_conn() as conn:
        row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
    return User.from_row(row) if row else None


def get_user_by_email(email: str) -> Optional[User]:
    with get_conn() as conn:
        row = conn.execute(
            "SELECT * FROM users WHERE email = ?", (normalize_email(email),)
        ).fetchone()
    return User.from_row(row) if row else None


def create_user(
    *,
    email: str,
    name: Optional[str] = None,
    role: str = "learner",
    password: Optional[str] = None,
    timezone_name: Optional[str] = None,
) -> User:
    """Insert a user. ``password`` may be None for accounts that sign in with Google."""
    now = _now()
    password_hash = generate_password_hash(password) if password else None
    with get_conn() as conn:
        cur = conn.execute(
            """
            INSERT INTO users
              (email, name, role, password_hash, timezone, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (normalize_email(email), name, role, password_hash, timezone_name, now, now),
        )
        conn.commit()
        user_id = cur.lastrowid
    return get_user_by_id(user_id)  # type: ignore[return-value]


def update_user(user_id: int, **fields: Any) -> Optional[User]:
    """Apply a partial update; unknown keys raise ValueError."""
    unknown = set(fields) - _UPDATABLE
    if unknown:
        raise ValueError(f"Cannot update user fields: {sorted(unknown)}")
    if fields:
        if "is_disabled" in fields:
            fields["is_disabled"] = 1 if fields["is_disabled"] else 0
        assignments = ", ".join(f"{col} = ?" for col in fields)
        with get_conn() as conn:
            conn.execute(
                f"UPDATE users SET {assignments}, updated_at = ? WHERE id = ?",
                (*fields.values(), _now(), user_id),
            )
            conn.commit()
    return get_user_by_id(user_id)


def set_password(user_id: int, password: str) -> None:
    with get_conn() as conn:
        conn.execute(
            "UPDATE users SET password_hash = ?, updated_at = ? WHERE id = ?",
            (generate_password_hash(password), _now(), user_id),
        )
        conn.commit()


def verify_password(user: User, password: str) -> bool:
    if not user.password_hash:
        return False
    return check_password_hash(user.password_hash, password)


def list_users(
    *,
    role: Optional[str] = None,
    q: Optional[str] = None,
    active_only: bool = False,
) -> list[User]:
    clauses: list[str] = []
    params: list[Any] = []
    if role:
        clauses.append("role = ?")
        params.append(role)
    if q and q.strip():
        clauses.append(
            "(FOLD(email) LIKE ? ESCAPE '\\' OR FOLD(name) LIKE ? ESCAPE '\\')"
        )
        needle = like_needle(q)
        params.extend([needle, needle])
    if active_only:
        clauses.append("is_disabled = 0")
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    with get_conn() as conn:
        rows = conn.execute(
            f"SELECT * FROM users {where} ORDER BY email ASC", params
        ).fetchall()
    return [User.from_row(r) for r in rows]


# Stays below SQLite's bound-parameter limit (999 on older builds).
_IDS_PER_QUERY = 500


def get_users_by_ids(user_ids: list[int]) -> dict[int, User]:
    ids = list(dict.fromkeys(user_ids))
    found: dict[int, User] = {}
    with get_conn() as conn:
        for i in range(0, len(ids), _IDS_PER_QUERY):
            chunk = ids[i:i + _IDS_PER_QUERY]
            placeholders = ", ".join("?" for _ in chunk)
            rows = conn.execute(
                f"SELECT * FROM users WHERE id IN ({placeholders})", chunk
            ).fetchall()
            found.update((row["id"], User.from_row(row)) for row in rows)
    return found
