"""Application schema exports."""

from .auth import (
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
from .invitations import InvitationCreate, InvitationRead, MembershipRead

__all__ = [
    "DeleteAccountRequest",
    "ForgotPasswordRequest",
    "InvitationCreate",
    "InvitationRead",
    "LoginResponse",
    "MembershipRead",
    "MessageResponse",
    "PasswordChangeRequest",
    "RefreshTokenRequest",
    "ResetPasswordRequest",
    "TokenResponse",
    "UserCreate",
    "UserLogin",
    "UserProfileUpdate",
    "UserRead",
]
