"""Authentication dependencies for API routes."""

from __future__ import annotations

from typing import Annotated, Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from projectcamp.core.errors import UnauthorizedError
from projectcamp.core.security import TokenKind, decode_token
from projectcamp.db.session import get_db
from projectcamp.models.user import User

ACCESS_TOKEN_COOKIE = "access_token"
REFRESH_TOKEN_COOKIE = "refresh_token"

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)


def get_bearer_token(
    request: Request,
    header_token: Annotated[Optional[str], Depends(oauth2_scheme)],
) -> str:
    """Return the access token from the cookie, falling back to the Authorization header."""

    token = request.cookies.get(ACCESS_TOKEN_COOKIE) or header_token
    if not token:
        raise UnauthorizedError("Not authenticated.")
    return token


def require_current_user(
    token: Annotated[str, Depends(get_bearer_token)],
    db: Annotated[Session, Depends(get_db)],
) -> User:
    """Validate an access token and return the associated user."""

    claims = decode_token(token, TokenKind.ACCESS)
    user = db.get(User, claims.subject)
    if user is None:
        raise UnauthorizedError()
    return user


__all__ = [
    "ACCESS_TOKEN_COOKIE",
    "REFRESH_TOKEN_COOKIE",
    "get_bearer_token",
    "oauth2_scheme",
    "require_current_user",
]
