"""Database helpers and base exports."""

from .base import Base
from .session import SessionLocal, commit_session, engine, get_db, verify_connection

__all__ = [
    "Base",
    "engine",
    "SessionLocal",
    "commit_session",
    "get_db",
    "verify_connection",
]
