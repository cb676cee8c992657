"""Account lifecycle: registration, sessions, passwords and email verification.

Every operation commits its own write and raises a single
:class:`~projectcamp.core.errors.ServiceError` subclass on failure. Emails are
dispatched only after the write is committed, and a failed send never undoes
it.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from email.message import EmailMessage
from typing import Any, Callable, Optional
from uuid import UUID

from fastapi import BackgroundTasks
from sqlalchemy import update
from sqlalchemy.orm import Session

from projectcamp.core.config import settings
from projectcamp.core.errors import (
    ConflictError,
    NotFoundError,
    TokenExpiredError,
    TokenInvalidError,
    UnauthorizedError,
    ValidationError,
)
from projectcamp.core.security import (
    TokenKind,
    burn_password_check,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_password,
)
from projectcamp.core.tokens import (
    TokenPurpose,
    cleared_slot_values,
    fill_slot,
    generate_single_use_token,
    hash_token,
    normalize_to_utc,
    read_slot,
    slot_columns,
)
from projectcamp.db.session import commit_session
from projectcamp.models.user import User
from projectcamp.schemas.auth import UserCreate, UserProfileUpdate
from projectcamp.services.email import (
    build_action_link,
    build_password_reset_email,
    build_verification_email,
    deliver_email,
)
from projectcamp.services.users import (
    find_conflicting_user,
    get_user_by_email,
    get_user_by_id,
    get_user_by_identifier,
    get_user_by_token_digest,
    get_user_by_username,
    normalize_email,
    normalize_username,
)

logger = logging.getLogger(__name__)

EmailSender = Callable[[EmailMessage], None]

VERIFY_EMAIL_PATH = "/api/v1/auth/verify-email"
RESET_PASSWORD_PATH = "/api/v1/auth/reset-password"

_INVALID_CREDENTIALS = "Invalid credentials."
_STALE_REFRESH_TOKEN = "Refresh token is no longer valid. Please log in again."
_DUPLICATE_ACCOUNT = "Username or email already in use."


@dataclass(frozen=True)
class AuthSession:
    """A freshly issued token pair together with its owner."""

    user: User
    access_token: str
    refresh_token: str


def _issue_session(user: User) -> AuthSession:
    """Mint a token pair and record the refresh digest on ``user`` (uncommitted)."""

    access_token = create_access_token(user.id, user.username, user.email)
    refresh_token = create_refresh_token(user.id)
    user.refresh_token_hash = hash_token(refresh_token)
    user.refresh_token_expires_at = datetime.now(timezone.utc) + timedelta(
        days=settings.refresh_token_expire_days
    )
    return AuthSession(user=user, access_token=access_token, refresh_token=refresh_token)


def _send_verification_email(
    user: User,
    secret: str,
    *,
    background_tasks: BackgroundTasks | None,
    email_sender: EmailSender | None,
) -> None:
    link = build_action_link(VERIFY_EMAIL_PATH, secret)
    message = build_verification_email(user.email, user.username, link)
    if not deliver_email(message, background_tasks=background_tasks, email_sender=email_sender):
        logger.warning("Verification email for user %s was not sent; a resend is required", user.id)


def register_user(
    db: Session,
    user_in: UserCreate,
    *,
    background_tasks: BackgroundTasks | None = None,
    email_sender: EmailSender | None = None,
) -> User:
    """Create an unverified user and send them a verification link.

    The account is kept even if the email cannot be delivered; the user can
    ask for a new link later.
    """

    username = normalize_username(user_in.username)
    email = normalize_email(str(user_in.email))
    if find_conflicting_user(db, username, email) is not None:
        raise ConflictError(_DUPLICATE_ACCOUNT)

    user = User(
        username=username,
        email=email,
        full_name=user_in.full_name,
        hashed_password=hash_password(user_in.password),
        is_email_verified=False,
    )
    token = generate_single_use_token(TokenPurpose.EMAIL_VERIFICATION)
    fill_slot(user, TokenPurpose.EMAIL_VERIFICATION, token)

    db.add(user)
    commit_session(db, conflict_message=_DUPLICATE_ACCOUNT)
    db.refresh(user)
    logger.info("Registered user %s", user.id)

    _send_verification_email(
        user,
        token.secret,
        background_tasks=background_tasks,
        email_sender=email_sender,
    )
    return user


def login_user(db: Session, identifier: str, password: str) -> AuthSession:
    """Authenticate by email or username and issue a new token pair.

    Unknown accounts and wrong passwords fail identically.
    """

    user = get_user_by_identifier(db, identifier)
    if user is None:
        burn_password_check()
        logger.info("Login rejected: unknown account")
        raise UnauthorizedError(_INVALID_CREDENTIALS)
    if not verify_password(password, user.hashed_password):
        logger.info("Login rejected for user %s: wrong password", user.id)
        raise UnauthorizedError(_INVALID_CREDENTIALS)

    session = _issue_session(user)
    commit_session(db)
    db.refresh(user)
    logger.info("User %s logged in", user.id)
    return session


def logout_user(db: Session, user_id: UUID) -> None:
    """Revoke the stored refresh token. Calling it again is a no-op."""

    db.execute(
        update(User)
        .where(User.id == user_id)
        .values(refresh_token_hash=None, refresh_token_expires_at=None)
    )
    commit_session(db)
    logger.info("User %s logged out", user_id)


def refresh_session(db: Session, refresh_token: str) -> AuthSession:
    """Exchange a refresh token for a new pair, rotating the stored digest.

    The rotation is a conditional UPDATE on the presented digest, so of two
    concurrent refreshes with the same token only one can succeed.
    """

    claims = decode_token(refresh_token, TokenKind.REFRESH)
    user = get_user_by_id(db, claims.subject)
    if user is None:
        raise NotFoundError("User not found.")

    presented_digest = hash_token(refresh_token)
    stored_digest = user.refresh_token_hash
    if stored_digest is None or not secrets.compare_digest(stored_digest, presented_digest):
        logger.warning("Refresh rejected for user %s: token does not match the stored one", user.id)
        raise UnauthorizedError(_STALE_REFRESH_TOKEN)
    if user.refresh_token_expires_at is not None and normalize_to_utc(
        user.refresh_token_expires_at
    ) <= datetime.now(timezone.utc):
        logger.info("Refresh rejected for user %s: stored token expired", user.id)
        raise TokenExpiredError()

    access_token = create_access_token(user.id, user.username, user.email)
    new_refresh_token = create_refresh_token(user.id)
    result = db.execute(
        update(User)
        .where(User.id == user.id, User.refresh_token_hash == presented_digest)
        .values(
            refresh_token_hash=hash_token(new_refresh_token),
            refresh_token_expires_at=datetime.now(timezone.utc)
            + timedelta(days=settings.refresh_token_expire_days),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        logger.warning("Refresh rejected for user %s: token was rotated concurrently", user.id)
        raise UnauthorizedError(_STALE_REFRESH_TOKEN)

    commit_session(db)
    db.refresh(user)
    logger.info("Rotated refresh token for user %s", user.id)
    return AuthSession(user=user, access_token=access_token, refresh_token=new_refresh_token)


def change_password(db: Session, user: User, old_password: str, new_password: str) -> User:
    """Replace the password after checking the current one.

    Existing sessions stay valid.
    """

    if not verify_password(old_password, user.hashed_password):
        logger.info("Password change rejected for user %s: wrong current password", user.id)
        raise UnauthorizedError("Current password is incorrect.")

    user.hashed_password = hash_password(new_password)
    db.add(user)
    commit_session(db)
    db.refresh(user)
    logger.info("User %s changed their password", user.id)
    return user


def request_password_reset(
    db: Session,
    email: str,
    *,
    background_tasks: BackgroundTasks | None = None,
    email_sender: EmailSender | None = None,
) -> None:
    """Email a reset link if an account exists; return silently either way."""

    user = get_user_by_email(db, email)
    if user is None:
        logger.info("Password reset requested for an unknown email")
        return

    token = generate_single_use_token(TokenPurpose.PASSWORD_RESET)
    fill_slot(user, TokenPurpose.PASSWORD_RESET, token)
    db.add(user)
    commit_session(db)
    logger.info("Issued password reset token for user %s", user.id)

    link = build_action_link(RESET_PASSWORD_PATH, token.secret)
    message = build_password_reset_email(user.email, user.username, link)
    deliver_email(message, background_tasks=background_tasks, email_sender=email_sender)


def _find_token_holder(db: Session, purpose: TokenPurpose, raw_token: str) -> tuple[User, str]:
    digest = hash_token(raw_token)
    user = get_user_by_token_digest(db, purpose, digest)
    if user is None:
        logger.info("Rejected %s token: no matching record", purpose.value)
        raise TokenInvalidError()
    if not read_slot(user, purpose).accepts(digest):
        logger.info("Rejected %s token for user %s: expired", purpose.value, user.id)
        raise TokenInvalidError()
    return user, digest


def _consume_token(
    db: Session,
    purpose: TokenPurpose,
    user: User,
    digest: str,
    changes: dict[str, Any],
) -> User:
    """Empty the slot and apply ``changes`` only if the slot still holds ``digest``."""

    digest_attr, _ = slot_columns(purpose)
    result = db.execute(
        update(User)
        .where(User.id == user.id, getattr(User, digest_attr) == digest)
        .values(**cleared_slot_values(purpose), **changes)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        logger.info("Rejected %s token for user %s: already consumed", purpose.value, user.id)
        raise TokenInvalidError()

    commit_session(db)
    db.refresh(user)
    return user


def reset_password(db: Session, raw_token: str, new_password: str, confirm_password: str) -> User:
    """Set a new password using a reset token, consuming the token."""

    if new_password != confirm_password:
        raise ValidationError("Password confirmation does not match.")

    user, digest = _find_token_holder(db, TokenPurpose.PASSWORD_RESET, raw_token)
    user = _consume_token(
        db,
        TokenPurpose.PASSWORD_RESET,
        user,
        digest,
        {"hashed_password": hash_password(new_password)},
    )
    logger.info("User %s reset their password", user.id)
    return user


def verify_email(db: Session, raw_token: str) -> User:
    """Mark the token holder's email as verified, consuming the token."""

    user, digest = _find_token_holder(db, TokenPurpose.EMAIL_VERIFICATION, raw_token)
    user = _consume_token(
        db,
        TokenPurpose.EMAIL_VERIFICATION,
        user,
        digest,
        {"is_email_verified": True},
    )
    logger.info("User %s verified their email", user.id)
    return user


def resend_verification_email(
    db: Session,
    user: User,
    *,
    background_tasks: BackgroundTasks | None = None,
    email_sender: EmailSender | None = None,
) -> None:
    """Issue a new verification token, invalidating the previous one."""

    if user.is_email_verified:
        raise ConflictError("Email is already verified.")

    token = generate_single_use_token(TokenPurpose.EMAIL_VERIFICATION)
    fill_slot(user, TokenPurpose.EMAIL_VERIFICATION, token)
    db.add(user)
    commit_session(db)
    db.refresh(user)
    logger.info("Reissued verification token for user %s", user.id)

    _send_verification_email(
        user,
        token.secret,
        background_tasks=background_tasks,
        email_sender=email_sender,
    )


def update_profile(db: Session, user: User, update_in: UserProfileUpdate) -> User:
    """Update the username and/or full name."""

    if update_in.username is not None:
        username = normalize_username(update_in.username)
        if username != user.username:
            existing = get_user_by_username(db, username)
            if existing is not None and existing.id != user.id:
                raise ConflictError("Username already in use.")
            user.username = username

    if update_in.full_name is not None:
        user.full_name = update_in.full_name

    db.add(user)
    commit_session(db, conflict_message="Username already in use.")
    db.refresh(user)
    return user


def delete_account(db: Session, user: User, password: str) -> None:
    """Delete the account after re-checking the password."""

    if not verify_password(password, user.hashed_password):
        logger.info("Account deletion rejected for user %s: wrong password", user.id)
        raise UnauthorizedError("Invalid password.")

    user_id = user.id
    db.delete(user)
    commit_session(db)
    logger.info("Deleted user %s", user_id)


__all__ = [
    "AuthSession",
    "RESET_PASSWORD_PATH",
    "VERIFY_EMAIL_PATH",
    "change_password",
    "delete_account",
    "login_user",
    "logout_user",
    "refresh_session",
    "register_user",
    "request_password_reset",
    "resend_verification_email",
    "reset_password",
    "update_profile",
    "verify_email",
]
