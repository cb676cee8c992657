"""Project invitation lifecycle.

Invitations reuse the single-use token pattern: the invitee receives a secret
in accept/reject links and only its digest is stored on the invitation row.
Expired invitations are detected when their token is presented and flipped
to ``expired``; nothing sweeps them in the background.
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from fastapi import BackgroundTasks
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from projectcamp.core.errors import ConflictError, NotFoundError, TokenInvalidError
from projectcamp.core.tokens import (
    SingleUseToken,
    TokenPurpose,
    cleared_slot_values,
    fill_slot,
    generate_single_use_token,
    hash_token,
    read_slot,
)
from projectcamp.db.session import commit_session
from projectcamp.models.project import Project
from projectcamp.models.project_invitation import InvitationStatus, ProjectInvitation
from projectcamp.models.project_member import ProjectMember, ProjectRole
from projectcamp.models.user import User
from projectcamp.services.auth import EmailSender
from projectcamp.services.email import build_action_link, build_invitation_email, deliver_email
from projectcamp.services.permissions import check_project_permission, get_membership
from projectcamp.services.projects import get_project
from projectcamp.services.users import get_user_by_id

logger = logging.getLogger(__name__)

ACCEPT_INVITATION_PATH = "/api/v1/invitations/accept"
REJECT_INVITATION_PATH = "/api/v1/invitations/reject"

_ALREADY_MEMBER = "User is already a member of the project."
_REOPENABLE_STATUSES = (InvitationStatus.PENDING, InvitationStatus.EXPIRED)


def _send_invitation_email(
    invitation: ProjectInvitation,
    project: Project,
    invited_user: User,
    inviter: User,
    token: SingleUseToken,
    *,
    reminder: bool,
    background_tasks: BackgroundTasks | None,
    email_sender: EmailSender | None,
) -> None:
    message = build_invitation_email(
        invited_user.email,
        invited_user.username,
        project.name,
        inviter.full_name or inviter.username,
        build_action_link(ACCEPT_INVITATION_PATH, token.secret),
        build_action_link(REJECT_INVITATION_PATH, token.secret),
        reminder=reminder,
    )
    if not deliver_email(message, background_tasks=background_tasks, email_sender=email_sender):
        logger.warning("Invitation email for invitation %s was not sent", invitation.id)


def _get_project_or_404(db: Session, project_id: UUID) -> Project:
    project = get_project(db, project_id)
    if project is None:
        raise NotFoundError("Project not found.")
    return project


def _get_invitation_or_404(db: Session, project_id: UUID, invitation_id: UUID) -> ProjectInvitation:
    invitation = db.get(ProjectInvitation, invitation_id)
    if invitation is None or invitation.project_id != project_id:
        raise NotFoundError("Invitation not found.")
    return invitation


def send_invitation(
    db: Session,
    project_id: UUID,
    inviter: User,
    invited_user_id: UUID,
    role: ProjectRole = ProjectRole.MEMBER,
    *,
    background_tasks: BackgroundTasks | None = None,
    email_sender: EmailSender | None = None,
) -> ProjectInvitation:
    """Invite an existing user into a project.

    The inviter must themselves hold ``role`` (directly or through the role
    hierarchy), so nobody can hand out more access than they have.
    """

    project = _get_project_or_404(db, project_id)
    check_project_permission(db, project_id, inviter.id, {role})

    invited_user = get_user_by_id(db, invited_user_id)
    if invited_user is None:
        raise NotFoundError("User not found.")
    if get_membership(db, project_id, invited_user_id) is not None:
        raise ConflictError(_ALREADY_MEMBER)

    pending = db.execute(
        select(ProjectInvitation).where(
            ProjectInvitation.project_id == project_id,
            ProjectInvitation.invited_user_id == invited_user_id,
            ProjectInvitation.status == InvitationStatus.PENDING,
        )
    ).scalars().first()
    if pending is not None:
        raise ConflictError("An invitation is already pending for this user.")

    invitation = ProjectInvitation(
        project_id=project_id,
        invited_user_id=invited_user_id,
        invited_by_id=inviter.id,
        role=role,
        status=InvitationStatus.PENDING,
    )
    token = generate_single_use_token(TokenPurpose.PROJECT_INVITATION)
    fill_slot(invitation, TokenPurpose.PROJECT_INVITATION, token)
    db.add(invitation)
    commit_session(db)
    db.refresh(invitation)
    logger.info("User %s invited user %s to project %s", inviter.id, invited_user_id, project_id)

    _send_invitation_email(
        invitation,
        project,
        invited_user,
        inviter,
        token,
        reminder=False,
        background_tasks=background_tasks,
        email_sender=email_sender,
    )
    return invitation


def _find_pending_invitation(db: Session, raw_token: str) -> tuple[ProjectInvitation, str]:
    digest = hash_token(raw_token)
    invitation = db.execute(
        select(ProjectInvitation).where(ProjectInvitation.invitation_token_hash == digest)
    ).scalars().first()
    if invitation is None or invitation.status is not InvitationStatus.PENDING:
        logger.info("Rejected invitation token: no pending invitation matches")
        raise TokenInvalidError("Invalid or expired invitation token.")

    if not read_slot(invitation, TokenPurpose.PROJECT_INVITATION).accepts(digest):
        invitation.status = InvitationStatus.EXPIRED
        db.add(invitation)
        commit_session(db)
        logger.info("Invitation %s expired before it was answered", invitation.id)
        raise TokenInvalidError("Invalid or expired invitation token.")

    return invitation, digest


def _close_invitation(
    db: Session,
    invitation: ProjectInvitation,
    digest: str,
    status: InvitationStatus,
) -> None:
    """Move a pending invitation to ``status`` and empty its token slot.

    Only succeeds while the row still holds ``digest``, so a token can be
    answered once even under concurrent requests.
    """

    values: dict[str, Any] = {**cleared_slot_values(TokenPurpose.PROJECT_INVITATION), "status": status}
    result = db.execute(
        update(ProjectInvitation)
        .where(
            ProjectInvitation.id == invitation.id,
            ProjectInvitation.invitation_token_hash == digest,
            ProjectInvitation.status == InvitationStatus.PENDING,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        logger.info("Invitation %s was answered concurrently", invitation.id)
        raise TokenInvalidError("Invalid or expired invitation token.")


def accept_invitation(db: Session, raw_token: str) -> ProjectMember:
    """Redeem an invitation token and add the invitee to the project."""

    invitation, digest = _find_pending_invitation(db, raw_token)
    project_id = invitation.project_id
    user_id = invitation.invited_user_id
    role = invitation.role

    _close_invitation(db, invitation, digest, InvitationStatus.ACCEPTED)
    if get_membership(db, project_id, user_id) is not None:
        commit_session(db)
        raise ConflictError(_ALREADY_MEMBER)

    membership = ProjectMember(project_id=project_id, user_id=user_id, role=role)
    db.add(membership)
    commit_session(db, conflict_message=_ALREADY_MEMBER)
    db.refresh(membership)
    logger.info("User %s joined project %s as %s", user_id, project_id, role.value)
    return membership


def reject_invitation(db: Session, raw_token: str) -> ProjectInvitation:
    """Decline an invitation, consuming its token."""

    invitation, digest = _find_pending_invitation(db, raw_token)
    _close_invitation(db, invitation, digest, InvitationStatus.REJECTED)
    commit_session(db)
    db.refresh(invitation)
    logger.info("Invitation %s was rejected", invitation.id)
    return invitation


def list_project_invitations(db: Session, project_id: UUID) -> list[ProjectInvitation]:
    statement = (
        select(ProjectInvitation)
        .where(ProjectInvitation.project_id == project_id)
        .order_by(ProjectInvitation.created_at.desc())
    )
    return list(db.execute(statement).scalars().all())


def list_pending_invitations(db: Session, user: User) -> list[ProjectInvitation]:
    statement = (
        select(ProjectInvitation)
        .where(
            ProjectInvitation.invited_user_id == user.id,
            ProjectInvitation.status == InvitationStatus.PENDING,
        )
        .order_by(ProjectInvitation.created_at.desc())
    )
    return list(db.execute(statement).scalars().all())


def resend_invitation(
    db: Session,
    project_id: UUID,
    invitation_id: UUID,
    inviter: User,
    *,
    background_tasks: BackgroundTasks | None = None,
    email_sender: EmailSender | None = None,
) -> ProjectInvitation:
    """Issue a fresh token for a pending or expired invitation and email it again.

    The previous token stops working immediately.
    """

    invitation = _get_invitation_or_404(db, project_id, invitation_id)
    if invitation.status not in _REOPENABLE_STATUSES:
        raise ConflictError("Can only resend pending or expired invitations.")

    project = _get_project_or_404(db, project_id)
    invited_user = get_user_by_id(db, invitation.invited_user_id)
    if invited_user is None:
        raise NotFoundError("User not found.")

    token = generate_single_use_token(TokenPurpose.PROJECT_INVITATION)
    fill_slot(invitation, TokenPurpose.PROJECT_INVITATION, token)
    invitation.status = InvitationStatus.PENDING
    db.add(invitation)
    commit_session(db)
    db.refresh(invitation)
    logger.info("Reissued token for invitation %s", invitation.id)

    _send_invitation_email(
        invitation,
        project,
        invited_user,
        inviter,
        token,
        reminder=True,
        background_tasks=background_tasks,
        email_sender=email_sender,
    )
    return invitation


def cancel_invitation(db: Session, project_id: UUID, invitation_id: UUID) -> None:
    """Delete an invitation that has not been answered."""

    invitation = _get_invitation_or_404(db, project_id, invitation_id)
    if invitation.status not in _REOPENABLE_STATUSES:
        raise ConflictError("Can only cancel pending or expired invitations.")

    db.delete(invitation)
    commit_session(db)
    logger.info("Cancelled invitation %s", invitation_id)


__all__ = [
    "ACCEPT_INVITATION_PATH",
    "REJECT_INVITATION_PATH",
    "accept_invitation",
    "cancel_invitation",
    "list_pending_invitations",
    "list_project_invitations",
    "reject_invitation",
    "resend_invitation",
    "send_invitation",
]
