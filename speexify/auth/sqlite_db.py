"""
auth/sqlite_db.py — SQLite schema bootstrap and shared connection helper.
"""
from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from typing import Generator, Optional

DB_PATH = os.getenv("SQLITE_DB_PATH", "speexify.db")

# Largest value an INTEGER column can hold.
MAX_INTEGER = 2 ** 63 - 1

_CREATE_USERS = """
CREATE TABLE IF NOT EXISTS users (
    id                     INTEGER PRIMARY KEY AUTOINCREMENT,
    email                  TEXT UNIQUE NOT NULL,
    name                   TEXT,
    role                   TEXT NOT NULL DEFAULT 'learner'
                           CHECK(role IN ('learner','teacher','admin')),
    password_hash          TEXT,
    timezone               TEXT,
    is_disabled            INTEGER NOT NULL DEFAULT 0,
    rate_hourly_cents      INTEGER,
    rate_per_session_cents INTEGER,
    created_at             TEXT NOT NULL,
    updated_at             TEXT NOT NULL
);
"""

_CREATE_LESSONS = """
CREATE TABLE IF NOT EXISTS lessons (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    title       TEXT NOT NULL,
    start_at    TEXT NOT NULL,
    end_at      TEXT,
    meeting_url TEXT,
    notes       TEXT,
    user_id     INTEGER NOT NULL REFERENCES users(id),
    teacher_id  INTEGER REFERENCES users(id),
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);
"""

# Both code tables share one layout: a single pending code per email.
_CODE_TABLE = """
CREATE TABLE IF NOT EXISTS {table} (
    email       TEXT PRIMARY KEY,
    code_hash   TEXT NOT NULL,
    expires_at  TEXT NOT NULL,
    attempts    INTEGER NOT NULL DEFAULT 0,
    updated_at  TEXT NOT NULL
);
"""

_CREATE_AUTH_SESSIONS = """
CREATE TABLE IF NOT EXISTS auth_sessions (
    session_id       TEXT PRIMARY KEY,
    user_id          INTEGER NOT NULL REFERENCES users(id),
    view_as_user_id  INTEGER REFERENCES users(id),
    created_at       TEXT NOT NULL,
    expires_at       TEXT NOT NULL
);
"""

_CREATE_AUDIT_LOG = """
CREATE TABLE IF NOT EXISTS audit_log (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    actor_id     INTEGER,
    action       TEXT NOT NULL,
    entity_type  TEXT,
    entity_id    TEXT,
    metadata     TEXT,
    created_at   TEXT NOT NULL
);
"""

_CREATE_PACKAGES = """
CREATE TABLE IF NOT EXISTS packages (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    title             TEXT NOT NULL,
    description       TEXT,
    session_count     INTEGER NOT NULL DEFAULT 1,
    duration_minutes  INTEGER NOT NULL DEFAULT 60,
    price_cents       INTEGER NOT NULL DEFAULT 0,
    is_active         INTEGER NOT NULL DEFAULT 1
);
"""

_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_lessons_user_id ON lessons(user_id);",
    "CREATE INDEX IF NOT EXISTS idx_lessons_teacher_id ON lessons(teacher_id);",
    "CREATE INDEX IF NOT EXISTS idx_lessons_start_at ON lessons(start_at);",
    "CREATE INDEX IF NOT EXISTS idx_auth_sessions_user_id ON auth_sessions(user_id);",
    "CREATE INDEX IF NOT EXISTS idx_auth_sessions_expires ON auth_sessions(expires_at);",
]


def init_db() -> None:
    """Create tables if they don't exist. Safe to call on every startup."""
    with get_conn() as conn:
        conn.execute(_CREATE_USERS)
        conn.execute(_CREATE_LESSONS)
        conn.execute(_CODE_TABLE.format(table="verification_codes"))
        conn.execute(_CODE_TABLE.format(table="password_reset_codes"))
        conn.execute(_CREATE_AUTH_SESSIONS)
        conn.execute(_CREATE_AUDIT_LOG)
        conn.execute(_CREATE_PACKAGES)
        for idx in _INDEXES:
            conn.execute(idx)
        conn.commit()


def fold(value: Optional[str]) -> Optional[str]:
    """Unicode-aware case folding; SQLite's own LOWER() only folds ASCII."""
    return value.casefold() if value is not None else None


def like_needle(q: str) -> str:
    """
    Turn free text into a ``LIKE ... ESCAPE '\\'`` substring pattern that matches
    ``%`` and ``_`` literally and is compared against ``FOLD(column)``.
    """
    escaped = (
        fold(q.strip())
        .replace("\\", "\\\\")
        .replace("%", "\\%")
        .replace("_", "\\_")
    )
    return f"%{escaped}%"


@contextmanager
def get_conn() -> Generator[sqlite3.Connection, None, None]:
    """Yield a connection with row_factory set and foreign keys enforced."""
    conn = sqlite3.connect(DB_PATH)
    conn.row_factory = sqlite3.Row
    conn.create_function("FOLD", 1, fold, deterministic=True)
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA foreign_keys=ON;")
    try:
        yield conn
    finally:
        conn.close()
