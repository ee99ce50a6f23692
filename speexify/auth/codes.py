"""
auth/codes.py — One-time numeric codes: generation, hashing and storage.

Only a keyed hash of each code is stored. A table holds at most one row per
email; the row's presence is surfaced as an explicit state rather than a
nullable lookup.
"""
from __future__ import annotations

import hashlib
import hmac
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Union

from ..core.config import CODE_LENGTH, SESSION_SECRET
from .sqlite_db import get_conn

CODE_TABLES = ("verification_codes", "password_reset_codes")


@dataclass(frozen=True)
class NoCode:
    """No code is pending for this email."""


@dataclass(frozen=True)
class PendingCode:
    code_hash: str
    expires_at: datetime
    attempts: int
    updated_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


CodeState = Union[NoCode, PendingCode]
NO_CODE = NoCode()


def generate_code() -> str:
    """Uniformly random, zero-padded decimal code."""
    return f"{secrets.randbelow(10 ** CODE_LENGTH):0{CODE_LENGTH}d}"


def hash_code(email: str, code: str) -> str:
    msg = f"{email}:{code}".encode()
    return hmac.new(SESSION_SECRET.encode(), msg, hashlib.sha256).hexdigest()


def code_matches(state: PendingCode, email: str, code: str) -> bool:
    return hmac.compare_digest(state.code_hash, hash_code(email, code))


class CodeStore:
    """Persistence for one code table (registration or password reset)."""

    def __init__(self, table: str):
        if table not in CODE_TABLES:
            raise ValueError(f"Unknown code table: {table}")
        self.table = table

    def load(self, email: str) -> CodeState:
        with get_conn() as conn:
            row = conn.execute(
                f"SELECT * FROM {self.table} WHERE email = ?", (email,)
            ).fetchone()
        if not row:
            return NO_CODE
        return PendingCode(
            code_hash=row["code_hash"],
            expires_at=datetime.fromisoformat(row["expires_at"]),
            attempts=row["attempts"],
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def save(self, email: str, code_hash: str, expires_at: datetime) -> None:
        """Replace any pending code for ``email`` and reset its attempt counter."""
        with get_conn() as conn:
            conn.execute(
                f"""
                INSERT INTO {self.table} (email, code_hash, expires_at, attempts, updated_at)
                VALUES (?, ?, ?, 0, ?)
                ON CONFLICT(email) DO UPDATE SET
                    code_hash = excluded.code_hash,
                    expires_at = excluded.expires_at,
                    attempts = 0,
                    updated_at = excluded.updated_at
                """,
                (
                    email,
                    code_hash,
                    expires_at.isoformat(),
                    datetime.now(timezone.utc).isoformat(),
                ),
            )
            conn.commit()

    def record_failed_attempt(self, email: str) -> None:
        with get_conn() as conn:
            conn.execute(
                f"UPDATE {self.table} SET attempts = attempts + 1 WHERE email = ?",
                (email,),
            )
            conn.commit()

    def delete(self, email: str) -> None:
        with get_conn() as conn:
            conn.execute(f"DELETE FROM {self.table} WHERE email = ?", (email,))
            conn.commit()


registration_codes = CodeStore("verification_codes")
reset_codes = CodeStore("password_reset_codes")
