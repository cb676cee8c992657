"""Service layer helpers for domain operations."""

from .auth import (
    AuthSession,
    change_password,
    delete_account,
    login_user,
    logout_user,
    refresh_session,
    register_user,
    request_password_reset,
    resend_verification_email,
    reset_password,
    update_profile,
    verify_email,
)
from .email import EmailDeliveryError, deliver_email, send_email
from .invitations import (
    accept_invitation,
    cancel_invitation,
    list_pending_invitations,
    list_project_invitations,
    reject_invitation,
    resend_invitation,
    send_invitation,
)
from .permissions import check_project_permission, role_satisfies
from .projects import create_project, get_project
from .users import get_user_by_email, get_user_by_id, get_user_by_identifier

__all__ = [
    "AuthSession",
    "EmailDeliveryError",
    "accept_invitation",
    "cancel_invitation",
    "change_password",
    "check_project_permission",
    "create_project",
    "delete_account",
    "deliver_email",
    "get_project",
    "get_user_by_email",
    "get_user_by_id",
    "get_user_by_identifier",
    "list_pending_invitations",
    "list_project_invitations",
    "login_user",
    "logout_user",
    "refresh_session",
    "register_user",
    "reject_invitation",
    "request_password_reset",
    "resend_invitation",
    "resend_verification_email",
    "reset_password",
    "role_satisfies",
    "send_email",
    "send_invitation",
    "update_profile",
    "verify_email",
]
