"""Authentication API routes."""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Request, Response, status
from sqlalchemy.orm import Session

from projectcamp.api.dependencies import get_db, require_current_user
from projectcamp.api.dependencies.auth import ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE, oauth2_scheme
from projectcamp.api.limiter import limiter
from projectcamp.core.config import settings
from projectcamp.core.errors import UnauthorizedError
from projectcamp.models.user import User
from projectcamp.schemas.auth import (
    DeleteAccountRequest,
    ForgotPasswordRequest,
    LoginResponse,
    MessageResponse,
    PasswordChangeRequest,
    RefreshTokenRequest,
    ResetPasswordRequest,
    TokenResponse,
    UserCreate,
    UserLogin,
    UserProfileUpdate,
    UserRead,
)
from projectcamp.services import auth as auth_service
from projectcamp.services.auth import AuthSession

router = APIRouter(tags=["auth"])


def _set_session_cookies(response: Response, session: AuthSession) -> None:
    cookie_options = {"httponly": True, "secure": settings.cookie_secure, "samesite": "lax"}
    response.set_cookie(
        ACCESS_TOKEN_COOKIE,
        session.access_token,
        max_age=settings.access_token_expire_minutes * 60,
        **cookie_options,
    )
    response.set_cookie(
        REFRESH_TOKEN_COOKIE,
        session.refresh_token,
        max_age=settings.refresh_token_expire_days * 24 * 60 * 60,
        **cookie_options,
    )


def _clear_session_cookies(response: Response) -> None:
    for name in (ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE):
        response.delete_cookie(name, httponly=True, secure=settings.cookie_secure, samesite="lax")


@router.post("/register", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def register_user(
    payload: UserCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
) -> User:
    """Register a new user and queue a verification email."""

    return auth_service.register_user(db, payload, background_tasks=background_tasks)


@router.post("/login", response_model=LoginResponse)
@limiter.limit(settings.auth_rate_limit)
def login_user(
    payload: UserLogin,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
) -> LoginResponse:
    """Authenticate by email or username and return a token pair."""

    session = auth_service.login_user(db, payload.identifier, payload.password)
    _set_session_cookies(response, session)
    return LoginResponse(
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        user=UserRead.model_validate(session.user),
    )


@router.post("/logout", response_model=MessageResponse)
def logout_user(
    response: Response,
    current_user: User = Depends(require_current_user),
    db: Session = Depends(get_db),
) -> MessageResponse:
    """Revoke the caller's refresh token and clear the session cookies."""

    auth_service.logout_user(db, current_user.id)
    _clear_session_cookies(response)
    return MessageResponse(message="User logged out.")


@router.post("/refresh-token", response_model=TokenResponse)
@limiter.limit(settings.auth_rate_limit)
def refresh_access_token(
    request: Request,
    response: Response,
    payload: Optional[RefreshTokenRequest] = Body(None),
    header_token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> TokenResponse:
    """Rotate the refresh token taken from the body, the cookie or the Authorization header."""

    refresh_token = (
        (payload.refresh_token if payload is not None else None)
        or request.cookies.get(REFRESH_TOKEN_COOKIE)
        or header_token
    )
    if not refresh_token:
        raise UnauthorizedError("Refresh token is required.")

    session = auth_service.refresh_session(db, refresh_token)
    _set_session_cookies(response, session)
    return TokenResponse(access_token=session.access_token, refresh_token=session.refresh_token)


@router.get("/verify-email/{token}", response_model=MessageResponse)
def verify_email(token: str, db: Session = Depends(get_db)) -> MessageResponse:
    """Consume an email verification token."""

    auth_service.verify_email(db, token)
    return MessageResponse(message="Email verified.")


@router.post("/resend-verification", response_model=MessageResponse)
def resend_verification_email(
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_current_user),
    db: Session = Depends(get_db),
) -> MessageResponse:
    """Issue a new verification token to the caller and email it."""

    auth_service.resend_verification_email(db, current_user, background_tasks=background_tasks)
    return MessageResponse(message="Verification email sent.")


@router.post("/change-password", response_model=MessageResponse)
def change_password(
    payload: PasswordChangeRequest,
    current_user: User = Depends(require_current_user),
    db: Session = Depends(get_db),
) -> MessageResponse:
    """Change the caller's password after checking the current one."""

    auth_service.change_password(db, current_user, payload.old_password, payload.new_password)
    return MessageResponse(message="Password changed.")


@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
@limiter.limit(settings.auth_rate_limit)
def forgot_password(
    payload: ForgotPasswordRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
) -> MessageResponse:
    """Email a reset link when the account exists; the answer is the same either way."""

    auth_service.request_password_reset(db, str(payload.email), background_tasks=background_tasks)
    return MessageResponse(message="If an account exists for this email, a reset link has been sent.")


@router.post("/reset-password/{token}", response_model=MessageResponse)
def reset_password(
    token: str,
    payload: ResetPasswordRequest,
    db: Session = Depends(get_db),
) -> MessageResponse:
    """Set a new password using a reset token."""

    auth_service.reset_password(db, token, payload.new_password, payload.confirm_password)
    return MessageResponse(message="Password reset.")


@router.get("/me", response_model=UserRead)
def read_current_user(current_user: User = Depends(require_current_user)) -> User:
    return current_user


@router.patch("/me", response_model=UserRead)
def update_current_user(
    payload: UserProfileUpdate,
    current_user: User = Depends(require_current_user),
    db: Session = Depends(get_db),
) -> User:
    """Update the caller's username and/or full name."""

    return auth_service.update_profile(db, current_user, payload)


@router.post("/delete-account", response_model=MessageResponse)
def delete_account(
    payload: DeleteAccountRequest,
    response: Response,
    current_user: User = Depends(require_current_user),
    db: Session = Depends(get_db),
) -> MessageResponse:
    """Delete the caller's account after re-checking the password."""

    auth_service.delete_account(db, current_user, payload.password)
    _clear_session_cookies(response)
    return MessageResponse(message="Account deleted.")


__all__ = ["router"]
