"""Single-use token generation and the slots that hold their digests.

A single-use token is a random secret handed to the caller once (usually
inside an email link). Only its SHA-256 digest and an expiry are persisted,
in a slot dedicated to one purpose. Filling a slot replaces whatever token was
pending there, and consuming a token empties the slot.
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional

from projectcamp.core.config import settings


class TokenPurpose(str, Enum):
    """Purposes with their own token slot and lifetime."""

    EMAIL_VERIFICATION = "email_verification"
    PASSWORD_RESET = "password_reset"
    PROJECT_INVITATION = "project_invitation"


# purpose -> (digest column, expiry column) on the record owning the slot
_SLOT_COLUMN_MAP: dict[TokenPurpose, tuple[str, str]] = {
    TokenPurpose.EMAIL_VERIFICATION: (
        "email_verification_token_hash",
        "email_verification_token_expires_at",
    ),
    TokenPurpose.PASSWORD_RESET: (
        "forgot_password_token_hash",
        "forgot_password_token_expires_at",
    ),
    TokenPurpose.PROJECT_INVITATION: (
        "invitation_token_hash",
        "invitation_token_expires_at",
    ),
}


@dataclass(frozen=True)
class SingleUseToken:
    """A freshly generated token; ``secret`` must never be stored."""

    secret: str
    digest: str
    expires_at: datetime


@dataclass(frozen=True)
class TokenSlot:
    """The persisted trace of a pending single-use token."""

    digest: Optional[str]
    expires_at: Optional[datetime]

    @property
    def is_empty(self) -> bool:
        return self.digest is None

    def is_live(self, now: datetime | None = None) -> bool:
        if self.digest is None or self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return normalize_to_utc(self.expires_at) > now

    def accepts(self, digest: str, now: datetime | None = None) -> bool:
        """Return whether ``digest`` matches a pending, unexpired token."""

        if self.digest is None or not secrets.compare_digest(self.digest, digest):
            return False
        return self.is_live(now)


def hash_token(raw_token: str) -> str:
    """Return the hex SHA-256 digest stored in place of a secret."""

    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def normalize_to_utc(dt: datetime) -> datetime:
    """Ensure a datetime is timezone-aware in UTC."""

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def token_lifetime(purpose: TokenPurpose) -> timedelta:
    """Return the configured lifetime for tokens of ``purpose``."""

    if purpose is TokenPurpose.EMAIL_VERIFICATION:
        return timedelta(minutes=settings.email_verification_token_expiry_minutes)
    if purpose is TokenPurpose.PASSWORD_RESET:
        return timedelta(minutes=settings.password_reset_token_expiry_minutes)
    return timedelta(days=settings.invitation_token_expiry_days)


def generate_single_use_token(purpose: TokenPurpose, *, now: datetime | None = None) -> SingleUseToken:
    """Create a random secret along with the digest and expiry to persist."""

    issued_at = now or datetime.now(timezone.utc)
    secret = secrets.token_urlsafe(32)
    return SingleUseToken(
        secret=secret,
        digest=hash_token(secret),
        expires_at=issued_at + token_lifetime(purpose),
    )


def slot_columns(purpose: TokenPurpose) -> tuple[str, str]:
    """Return the (digest, expiry) attribute names backing ``purpose``."""

    return _SLOT_COLUMN_MAP[purpose]


def read_slot(record: Any, purpose: TokenPurpose) -> TokenSlot:
    digest_attr, expiry_attr = slot_columns(purpose)
    return TokenSlot(digest=getattr(record, digest_attr), expires_at=getattr(record, expiry_attr))


def fill_slot(record: Any, purpose: TokenPurpose, token: SingleUseToken) -> None:
    """Store a token's digest and expiry, replacing any pending token."""

    digest_attr, expiry_attr = slot_columns(purpose)
    setattr(record, digest_attr, token.digest)
    setattr(record, expiry_attr, token.expires_at)


def clear_slot(record: Any, purpose: TokenPurpose) -> None:
    digest_attr, expiry_attr = slot_columns(purpose)
    setattr(record, digest_attr, None)
    setattr(record, expiry_attr, None)


def cleared_slot_values(purpose: TokenPurpose) -> dict[str, None]:
    """Column values that empty a slot, for use in bulk UPDATE statements."""

    digest_attr, expiry_attr = slot_columns(purpose)
    return {digest_attr: None, expiry_attr: None}


__all__ = [
    "SingleUseToken",
    "TokenPurpose",
    "TokenSlot",
    "clear_slot",
    "cleared_slot_values",
    "fill_slot",
    "generate_single_use_token",
    "hash_token",
    "normalize_to_utc",
    "read_slot",
    "slot_columns",
    "token_lifetime",
]
