"""Repository helpers for interacting with user records."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from projectcamp.core.tokens import TokenPurpose, slot_columns
from projectcamp.models.user import User


def normalize_email(email: str) -> str:
    return email.strip().lower()


def normalize_username(username: str) -> str:
    return username.strip().lower()


def get_user_by_id(db: Session, user_id: UUID) -> Optional[User]:
    """Fetch a user by primary key."""

    return db.get(User, user_id)


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    """Fetch a user by email address."""

    statement = select(User).where(User.email == normalize_email(email))
    return db.execute(statement).scalar_one_or_none()


def get_user_by_username(db: Session, username: str) -> Optional[User]:
    """Fetch a user by username."""

    statement = select(User).where(User.username == normalize_username(username))
    return db.execute(statement).scalar_one_or_none()


def get_user_by_identifier(db: Session, identifier: str) -> Optional[User]:
    """Fetch a user by email when ``identifier`` looks like one, else by username."""

    if "@" in identifier:
        return get_user_by_email(db, identifier)
    return get_user_by_username(db, identifier)


def find_conflicting_user(db: Session, username: str, email: str) -> Optional[User]:
    """Return any user already holding ``username`` or ``email``."""

    statement = select(User).where(
        or_(
            User.username == normalize_username(username),
            User.email == normalize_email(email),
        )
    )
    return db.execute(statement).scalars().first()


def get_user_by_token_digest(db: Session, purpose: TokenPurpose, digest: str) -> Optional[User]:
    """Fetch the user whose ``purpose`` slot holds ``digest``.

    Expiry is not checked here; callers decide what an expired slot means.
    """

    digest_attr, _ = slot_columns(purpose)
    statement = select(User).where(getattr(User, digest_attr) == digest)
    return db.execute(statement).scalars().first()


__all__ = [
    "find_conflicting_user",
    "get_user_by_email",
    "get_user_by_id",
    "get_user_by_identifier",
    "get_user_by_token_digest",
    "get_user_by_username",
    "normalize_email",
    "normalize_username",
]
