"""Typed failures raised by the service layer.

Every service operation raises at most one of these per call. The message is
safe to show to API clients; anything internal (store errors, hashes, stack
traces) goes to the log instead.
"""

from __future__ import annotations

from fastapi import status


class ServiceError(Exception):
    """Base class for failures the HTTP layer knows how to render."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ServiceError):
    """Raised when input passes schema validation but is still unusable."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "Invalid input."


class ConflictError(ServiceError):
    """Raised when the request collides with existing state."""

    status_code = status.HTTP_409_CONFLICT
    default_message = "Resource already exists."


class UnauthorizedError(ServiceError):
    """Raised for bad credentials or unusable bearer tokens."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Could not validate credentials."


class TokenInvalidError(UnauthorizedError):
    """Raised when a token signature, payload or stored digest does not match."""

    default_message = "Invalid or expired token."


class TokenExpiredError(UnauthorizedError):
    """Raised when a signed token is past its expiry."""

    default_message = "Token has expired."


class NotFoundError(ServiceError):
    """Raised when a referenced record does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found."


class ForbiddenError(ServiceError):
    """Raised by the project permission gate.

    ``reason`` distinguishes a missing membership from an insufficient role for
    logging; clients see the same 403 either way.
    """

    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You do not have permission to access this project."

    NOT_MEMBER = "not_member"
    INSUFFICIENT_ROLE = "insufficient_role"

    def __init__(self, message: str | None = None, *, reason: str = NOT_MEMBER) -> None:
        super().__init__(message)
        self.reason = reason


class InternalError(ServiceError):
    """Raised when the store or hashing layer fails for reasons unrelated to input."""


__all__ = [
    "ConflictError",
    "ForbiddenError",
    "InternalError",
    "NotFoundError",
    "ServiceError",
    "TokenExpiredError",
    "TokenInvalidError",
    "UnauthorizedError",
    "ValidationError",
]
