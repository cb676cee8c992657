"""Authentication-related Pydantic schemas."""

from __future__ import annotations

import re
import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

_USERNAME_PATTERN = re.compile(r"^[a-z0-9_-]+$")
_RESERVED_USERNAMES = frozenset({"admin", "root", "api", "www", "mail", "ftp"})
_PASSWORD_SPECIALS = "@$!%*?&"


def _validate_username(value: str) -> str:
    username = value.strip().lower()
    if not 3 <= len(username) <= 30:
        raise ValueError("Username must be between 3 and 30 characters long.")
    if not _USERNAME_PATTERN.match(username):
        raise ValueError("Username can only contain lowercase letters, numbers, hyphens, and underscores.")
    if username[0] in "-_" or username[-1] in "-_":
        raise ValueError("Username cannot start or end with a hyphen or underscore.")
    if username in _RESERVED_USERNAMES:
        raise ValueError("Username is reserved.")
    return username


def _validate_strong_password(value: str) -> str:
    if any(char.isspace() for char in value):
        raise ValueError("Password cannot contain spaces.")
    if not (
        any(char.islower() for char in value)
        and any(char.isupper() for char in value)
        and any(char.isdigit() for char in value)
        and any(char in _PASSWORD_SPECIALS for char in value)
    ):
        raise ValueError(
            "Password must contain at least one lowercase letter, one uppercase letter, "
            f"one number, and one of {_PASSWORD_SPECIALS}."
        )
    return value


class UserCreate(BaseModel):
    """Schema for registering a user with username, email and password."""

    username: str
    email: EmailStr = Field(max_length=254)
    password: str = Field(min_length=8, max_length=128)
    full_name: str = Field(min_length=2, max_length=100)

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    @field_validator("username")
    @classmethod
    def _check_username(cls, value: str) -> str:
        return _validate_username(value)

    @field_validator("password")
    @classmethod
    def _check_password(cls, value: str) -> str:
        return _validate_strong_password(value)


class UserLogin(BaseModel):
    """Schema for logging in with either an email or a username."""

    email: Optional[EmailStr] = None
    username: Optional[str] = None
    password: str = Field(min_length=1)

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    @model_validator(mode="after")
    def _require_identifier(self) -> "UserLogin":
        if not self.email and not self.username:
            raise ValueError("Either email or username is required.")
        return self

    @property
    def identifier(self) -> str:
        return str(self.email or self.username)


class UserRead(BaseModel):
    """Schema representing the public view of a user."""

    id: uuid.UUID
    username: str
    email: EmailStr
    full_name: Optional[str] = None
    is_email_verified: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True, frozen=True)


class TokenResponse(BaseModel):
    """Schema for returning an access/refresh token pair to the client."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"

    model_config = ConfigDict(frozen=True)


class LoginResponse(TokenResponse):
    """Token pair plus the authenticated user's public projection."""

    user: UserRead


class RefreshTokenRequest(BaseModel):
    """Optional body for the refresh endpoint when no cookie or header is sent."""

    refresh_token: Optional[str] = None

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)


class ForgotPasswordRequest(BaseModel):
    """Payload for requesting a password reset link."""

    email: EmailStr

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)


class ResetPasswordRequest(BaseModel):
    """Payload for setting a new password with a reset token."""

    new_password: str = Field(min_length=8, max_length=128)
    confirm_password: str = Field(min_length=1)

    model_config = ConfigDict(frozen=True)

    @field_validator("new_password")
    @classmethod
    def _check_password(cls, value: str) -> str:
        return _validate_strong_password(value)


class PasswordChangeRequest(BaseModel):
    """Payload required to change a password."""

    old_password: str = Field(min_length=1)
    new_password: str = Field(min_length=8, max_length=128)

    model_config = ConfigDict(frozen=True)

    @field_validator("new_password")
    @classmethod
    def _check_password(cls, value: str) -> str:
        return _validate_strong_password(value)


class UserProfileUpdate(BaseModel):
    """Incoming payload for updating profile fields."""

    username: Optional[str] = None
    full_name: Optional[str] = Field(None, min_length=2, max_length=100)

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    @field_validator("username")
    @classmethod
    def _check_username(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        return _validate_username(value)


class DeleteAccountRequest(BaseModel):
    """Password confirmation required before deleting an account."""

    password: str = Field(min_length=1)

    model_config = ConfigDict(frozen=True)


class MessageResponse(BaseModel):
    """Plain acknowledgement returned by side-effect-only endpoints."""

    message: str

    model_config = ConfigDict(frozen=True)


__all__ = [
    "DeleteAccountRequest",
    "ForgotPasswordRequest",
    "LoginResponse",
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
