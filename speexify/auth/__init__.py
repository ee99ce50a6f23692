from .sqlite_db import init_db, get_conn
from .models import AuthSession, Lesson, Package, User, UserRef
from .session_store import SessionStore, session_store

__all__ = [
    "init_db",
    "get_conn",
    "AuthSession",
    "Lesson",
    "Package",
    "User",
    "UserRef",
    "SessionStore",
    "session_store",
]
