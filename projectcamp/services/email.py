"""Utilities for sending transactional emails."""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from typing import Callable, Optional
from urllib.parse import quote

from fastapi import BackgroundTasks

from projectcamp.core.config import settings

logger = logging.getLogger(__name__)

PRODUCT_NAME = "Project Camp"


class EmailDeliveryError(Exception):
    """Raised when an email could not be delivered."""


def build_action_link(path: str, token: str) -> str:
    """Build an externally visible link that carries ``token`` as the last path segment."""

    base_url = settings.public_base_url.rstrip("/")
    return f"{base_url}/{path.strip('/')}/{quote(token, safe='')}"


def _build_message(recipient: str, subject: str, text_body: str, html_body: str) -> EmailMessage:
    message = EmailMessage()
    message["Subject"] = subject
    message["From"] = settings.email_sender
    message["To"] = recipient
    message.set_content(text_body)
    message.add_alternative(html_body, subtype="html")
    return message


def build_verification_email(recipient: str, username: str, verification_link: str) -> EmailMessage:
    """Construct the email asking a new user to verify their address."""

    return _build_message(
        recipient,
        "Verify your email address",
        (
            f"Hi {username},\n\n"
            f"Welcome to {PRODUCT_NAME}! We're excited to have you on board.\n\n"
            "To get started, please verify your email address using the link below:\n"
            f"{verification_link}\n\n"
            "The link expires in "
            f"{settings.email_verification_token_expiry_minutes} minutes."
        ),
        (
            f"<p>Hi {username},</p>"
            f"<p>Welcome to {PRODUCT_NAME}! We're excited to have you on board.</p>"
            f"<p><a href=\"{verification_link}\">Verify my email</a></p>"
            f"<p>The link expires in {settings.email_verification_token_expiry_minutes} minutes.</p>"
        ),
    )


def build_password_reset_email(recipient: str, username: str, reset_link: str) -> EmailMessage:
    """Construct the email carrying a password reset link."""

    return _build_message(
        recipient,
        "Reset your password",
        (
            f"Hi {username},\n\n"
            "You have requested to reset your password. Use the link below to choose a new one:\n"
            f"{reset_link}\n\n"
            "If you did not request this, you can ignore this email."
        ),
        (
            f"<p>Hi {username},</p>"
            "<p>You have requested to reset your password.</p>"
            f"<p><a href=\"{reset_link}\">Reset password</a></p>"
            "<p>If you did not request this, you can ignore this email.</p>"
        ),
    )


def build_invitation_email(
    recipient: str,
    username: str,
    project_name: str,
    inviter_name: str,
    accept_link: str,
    reject_link: str,
    *,
    reminder: bool = False,
) -> EmailMessage:
    """Construct a project invitation email with accept and reject links."""

    subject = f"Invitation to join project: {project_name}"
    if reminder:
        subject = f"Reminder: {subject}"
    return _build_message(
        recipient,
        subject,
        (
            f"Hi {username},\n\n"
            f"{inviter_name} has invited you to join the project \"{project_name}\".\n\n"
            f"Accept: {accept_link}\n"
            f"Decline: {reject_link}\n\n"
            f"This invitation expires in {settings.invitation_token_expiry_days} days."
        ),
        (
            f"<p>Hi {username},</p>"
            f"<p>{inviter_name} has invited you to join the project <strong>{project_name}</strong>.</p>"
            f"<p><a href=\"{accept_link}\">Accept invitation</a> | "
            f"<a href=\"{reject_link}\">Decline</a></p>"
            f"<p>This invitation expires in {settings.invitation_token_expiry_days} days.</p>"
        ),
    )


def send_email(message: EmailMessage) -> None:
    """Send an email using the configured SMTP server."""

    host = settings.smtp_host
    port = settings.smtp_port
    username = settings.smtp_username or None
    password = settings.smtp_password or None
    use_tls = settings.smtp_use_tls

    try:
        with smtplib.SMTP(host=host, port=port) as smtp:
            if use_tls:
                smtp.starttls()
            if username and password:
                smtp.login(username, password)
            smtp.send_message(message)
    except (smtplib.SMTPException, OSError) as exc:  # pragma: no cover - network failure path
        logger.warning("SMTP delivery to %s failed: %s", message["To"], type(exc).__name__)
        raise EmailDeliveryError("Failed to send email") from exc


def _send_best_effort(message: EmailMessage, sender: Optional[Callable[[EmailMessage], None]] = None) -> bool:
    try:
        (sender or send_email)(message)
    except EmailDeliveryError:
        logger.warning("Email %r to %s was not delivered", message["Subject"], message["To"])
        return False
    return True


def deliver_email(
    message: EmailMessage,
    *,
    background_tasks: BackgroundTasks | None = None,
    email_sender: Optional[Callable[[EmailMessage], None]] = None,
) -> bool:
    """Send ``message`` now or queue it on ``background_tasks``.

    Delivery is best-effort: a failed send is logged and never undoes the
    state change that triggered it. Returns False only when an immediate
    send failed.
    """

    if background_tasks is not None:
        background_tasks.add_task(_send_best_effort, message, email_sender)
        return True
    return _send_best_effort(message, email_sender)


__all__ = [
    "EmailDeliveryError",
    "build_action_link",
    "build_invitation_email",
    "build_password_reset_email",
    "build_verification_email",
    "deliver_email",
    "send_email",
]
