"""Security helpers for password hashing and JWT token generation."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from projectcamp.core.config import settings
from projectcamp.core.errors import InternalError, TokenExpiredError, TokenInvalidError

logger = logging.getLogger(__name__)


_pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.password_hash_rounds,
)


class TokenKind(str, Enum):
    """Bearer token kinds, each with its own secret and lifetime."""

    ACCESS = "access"
    REFRESH = "refresh"


@dataclass(frozen=True)
class TokenClaims:
    """Verified claims extracted from a bearer token."""

    subject: uuid.UUID
    kind: TokenKind
    expires_at: datetime
    token_id: str
    username: Optional[str] = None
    email: Optional[str] = None


def hash_password(password: str) -> str:
    """Hash a plaintext password using a salted bcrypt context."""
    try:
        return _pwd_context.hash(password)
    except (ValueError, TypeError, RuntimeError) as exc:
        logger.error("Password hashing failed: %s", type(exc).__name__)
        raise InternalError() from exc


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """Verify a plaintext password against a stored digest.

    A missing or malformed digest counts as a mismatch rather than an error.
    """

    if not hashed_password:
        return False
    try:
        return _pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        logger.warning("Stored password digest could not be parsed")
        return False


def burn_password_check() -> None:
    """Spend the same time as a real verification when there is no digest to check."""

    _pwd_context.dummy_verify()


def _secret_for(kind: TokenKind) -> str:
    if kind is TokenKind.ACCESS:
        return settings.access_token_secret
    return settings.refresh_token_secret


def _lifetime_for(kind: TokenKind) -> timedelta:
    if kind is TokenKind.ACCESS:
        return timedelta(minutes=settings.access_token_expire_minutes)
    return timedelta(days=settings.refresh_token_expire_days)


def _encode(kind: TokenKind, subject: uuid.UUID | str, extra_claims: dict[str, Any] | None = None) -> str:
    issued_at = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": str(subject),
        "type": kind.value,
        "jti": uuid.uuid4().hex,
        "iat": issued_at,
        "exp": issued_at + _lifetime_for(kind),
    }
    if extra_claims:
        payload.update(extra_claims)
    return jwt.encode(payload, _secret_for(kind), algorithm=settings.jwt_algorithm)


def create_access_token(user_id: uuid.UUID | str, username: str, email: str) -> str:
    """Create a short-lived access token carrying the user's public identity."""

    return _encode(TokenKind.ACCESS, user_id, {"username": username, "email": email})


def create_refresh_token(user_id: uuid.UUID | str) -> str:
    """Create a long-lived refresh token carrying only the subject.

    Each token gets a unique ``jti`` so two tokens minted in the same second
    never collide.
    """

    return _encode(TokenKind.REFRESH, user_id)


def decode_token(token: str, kind: TokenKind) -> TokenClaims:
    """Verify a bearer token of the given kind and return its claims.

    Raises:
        TokenExpiredError: the signature is valid but ``exp`` has passed.
        TokenInvalidError: bad signature, malformed payload or wrong kind.
    """

    try:
        payload = jwt.decode(token, _secret_for(kind), algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError as exc:
        logger.info("Rejected expired %s token", kind.value)
        raise TokenExpiredError() from exc
    except JWTError as exc:
        logger.info("Rejected %s token with invalid signature or payload", kind.value)
        raise TokenInvalidError() from exc

    if payload.get("type") != kind.value:
        logger.info("Rejected token presented as %s with type %r", kind.value, payload.get("type"))
        raise TokenInvalidError()

    try:
        subject = uuid.UUID(str(payload["sub"]))
        expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
        token_id = str(payload["jti"])
    except (KeyError, TypeError, ValueError) as exc:
        logger.info("Rejected %s token with malformed claims", kind.value)
        raise TokenInvalidError() from exc

    return TokenClaims(
        subject=subject,
        kind=kind,
        expires_at=expires_at,
        token_id=token_id,
        username=payload.get("username"),
        email=payload.get("email"),
    )


__all__ = [
    "TokenClaims",
    "TokenKind",
    "burn_password_check",
    "create_access_token",
    "create_refresh_token",
    "decode_token",
    "hash_password",
    "verify_password",
]
