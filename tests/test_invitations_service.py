"""Tests for the project invitation service."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.orm import Session

from projectcamp.core.errors import ConflictError, ForbiddenError, NotFoundError, TokenInvalidError
from projectcamp.core.tokens import hash_token, read_slot
from projectcamp.models.project_invitation import InvitationStatus, ProjectInvitation
from projectcamp.models.project_member import ProjectMember, ProjectRole
from projectcamp.services.invitations import (
    ACCEPT_INVITATION_PATH,
    REJECT_INVITATION_PATH,
    accept_invitation,
    cancel_invitation,
    list_pending_invitations,
    list_project_invitations,
    reject_invitation,
    resend_invitation,
    send_invitation,
)
from projectcamp.services.permissions import get_membership
from projectcamp.services.projects import create_project


@pytest.fixture()
def setup(db_session: Session, user_factory, capture_outbound_email):
    owner = user_factory("owner", full_name="Olivia Owner")
    invitee = user_factory("invitee")
    project = create_project(db_session, owner, "Apollo")
    capture_outbound_email.clear()
    return project, owner, invitee


def test_send_invitation_emails_accept_and_reject_links(
    db_session: Session,
    setup,
    capture_outbound_email,
    token_from_email,
) -> None:
    project, owner, invitee = setup

    invitation = send_invitation(db_session, project.id, owner, invitee.id, ProjectRole.PROJECT_ADMIN)

    assert invitation.status is InvitationStatus.PENDING
    assert invitation.role is ProjectRole.PROJECT_ADMIN
    assert invitation.invited_by_id == owner.id
    assert len(capture_outbound_email) == 1
    email = capture_outbound_email[0]
    assert email["recipient"] == invitee.email
    assert "Apollo" in email["subject"]
    assert "Olivia Owner" in email["body"]
    accept_token = token_from_email(email, ACCEPT_INVITATION_PATH)
    assert accept_token == token_from_email(email, REJECT_INVITATION_PATH)
    assert invitation.invitation_token_hash == hash_token(accept_token)


def test_invitation_expires_after_seven_days(db_session: Session, setup) -> None:
    project, owner, invitee = setup

    invitation = send_invitation(db_session, project.id, owner, invitee.id)
    expires_at = invitation.invitation_token_expires_at
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)

    remaining = expires_at - datetime.now(timezone.utc)
    assert timedelta(days=6, hours=23) < remaining <= timedelta(days=7)


def test_send_invitation_to_unknown_user_or_project(db_session: Session, setup) -> None:
    project, owner, _ = setup

    with pytest.raises(NotFoundError):
        send_invitation(db_session, project.id, owner, uuid.uuid4())
    with pytest.raises(NotFoundError):
        send_invitation(db_session, uuid.uuid4(), owner, owner.id)


def test_send_invitation_to_existing_member_conflicts(db_session: Session, setup) -> None:
    project, owner, _ = setup

    with pytest.raises(ConflictError):
        send_invitation(db_session, project.id, owner, owner.id)


def test_send_invitation_twice_conflicts(db_session: Session, setup) -> None:
    project, owner, invitee = setup
    send_invitation(db_session, project.id, owner, invitee.id)

    with pytest.raises(ConflictError):
        send_invitation(db_session, project.id, owner, invitee.id)


def test_inviter_cannot_grant_a_role_above_their_own(db_session: Session, setup, user_factory) -> None:
    project, _, invitee = setup
    manager = user_factory("manager")
    db_session.add(ProjectMember(project_id=project.id, user_id=manager.id, role=ProjectRole.PROJECT_ADMIN))
    db_session.commit()

    with pytest.raises(ForbiddenError):
        send_invitation(db_session, project.id, manager, invitee.id, ProjectRole.ADMIN)

    invitation = send_invitation(db_session, project.id, manager, invitee.id, ProjectRole.MEMBER)
    assert invitation.role is ProjectRole.MEMBER


def test_accept_invitation_creates_membership_once(
    db_session: Session,
    setup,
    capture_outbound_email,
    token_from_email,
) -> None:
    project, owner, invitee = setup
    invitation = send_invitation(db_session, project.id, owner, invitee.id, ProjectRole.PROJECT_ADMIN)
    token = token_from_email(capture_outbound_email[0], ACCEPT_INVITATION_PATH)

    membership = accept_invitation(db_session, token)

    assert membership.user_id == invitee.id
    assert membership.role is ProjectRole.PROJECT_ADMIN
    db_session.refresh(invitation)
    assert invitation.status is InvitationStatus.ACCEPTED
    assert invitation.invitation_token_hash is None
    assert invitation.invitation_token_expires_at is None
    with pytest.raises(TokenInvalidError):
        accept_invitation(db_session, token)


def test_accept_for_user_who_already_joined_conflicts(
    db_session: Session,
    setup,
    capture_outbound_email,
    token_from_email,
) -> None:
    project, owner, invitee = setup
    invitation = send_invitation(db_session, project.id, owner, invitee.id)
    token = token_from_email(capture_outbound_email[0], ACCEPT_INVITATION_PATH)
    db_session.add(ProjectMember(project_id=project.id, user_id=invitee.id, role=ProjectRole.MEMBER))
    db_session.commit()

    with pytest.raises(ConflictError):
        accept_invitation(db_session, token)

    db_session.refresh(invitation)
    assert invitation.status is InvitationStatus.ACCEPTED


def test_reject_invitation_consumes_token(
    db_session: Session,
    setup,
    capture_outbound_email,
    token_from_email,
) -> None:
    project, owner, invitee = setup
    send_invitation(db_session, project.id, owner, invitee.id)
    token = token_from_email(capture_outbound_email[0], REJECT_INVITATION_PATH)

    invitation = reject_invitation(db_session, token)

    assert invitation.status is InvitationStatus.REJECTED
    assert invitation.invitation_token_hash is None
    assert get_membership(db_session, project.id, invitee.id) is None
    with pytest.raises(TokenInvalidError):
        accept_invitation(db_session, token)


def test_expired_invitation_is_marked_expired(
    db_session: Session,
    setup,
    capture_outbound_email,
    token_from_email,
) -> None:
    project, owner, invitee = setup
    invitation = send_invitation(db_session, project.id, owner, invitee.id)
    token = token_from_email(capture_outbound_email[0], ACCEPT_INVITATION_PATH)
    invitation.invitation_token_expires_at = datetime.now(timezone.utc) - timedelta(seconds=1)
    db_session.commit()

    with pytest.raises(TokenInvalidError):
        accept_invitation(db_session, token)

    db_session.refresh(invitation)
    assert invitation.status is InvitationStatus.EXPIRED
    assert get_membership(db_session, project.id, invitee.id) is None


def test_resend_invitation_replaces_token_and_reopens_expired(
    db_session: Session,
    setup,
    capture_outbound_email,
    token_from_email,
) -> None:
    project, owner, invitee = setup
    invitation = send_invitation(db_session, project.id, owner, invitee.id)
    first = token_from_email(capture_outbound_email[0], ACCEPT_INVITATION_PATH)
    invitation.status = InvitationStatus.EXPIRED
    db_session.commit()

    resent = resend_invitation(db_session, project.id, invitation.id, owner)
    second = token_from_email(capture_outbound_email[1], ACCEPT_INVITATION_PATH)

    assert resent.status is InvitationStatus.PENDING
    assert capture_outbound_email[1]["subject"].startswith("Reminder:")
    with pytest.raises(TokenInvalidError):
        accept_invitation(db_session, first)
    assert accept_invitation(db_session, second).user_id == invitee.id


def test_resend_answered_invitation_conflicts(
    db_session: Session,
    setup,
    capture_outbound_email,
    token_from_email,
) -> None:
    project, owner, invitee = setup
    invitation = send_invitation(db_session, project.id, owner, invitee.id)
    reject_invitation(db_session, token_from_email(capture_outbound_email[0], REJECT_INVITATION_PATH))

    with pytest.raises(ConflictError, match="pending or expired"):
        resend_invitation(db_session, project.id, invitation.id, owner)
    with pytest.raises(ConflictError, match="pending or expired"):
        cancel_invitation(db_session, project.id, invitation.id)


def test_resend_or_cancel_in_other_project_is_not_found(db_session: Session, setup) -> None:
    project, owner, invitee = setup
    invitation = send_invitation(db_session, project.id, owner, invitee.id)
    other = create_project(db_session, owner, "Gemini")

    with pytest.raises(NotFoundError):
        resend_invitation(db_session, other.id, invitation.id, owner)
    with pytest.raises(NotFoundError):
        cancel_invitation(db_session, other.id, invitation.id)


def test_cancel_invitation_deletes_pending_row(db_session: Session, setup) -> None:
    project, owner, invitee = setup
    invitation = send_invitation(db_session, project.id, owner, invitee.id)
    invitation_id = invitation.id

    cancel_invitation(db_session, project.id, invitation_id)

    assert db_session.get(ProjectInvitation, invitation_id) is None


def test_listing_invitations(db_session: Session, setup, user_factory) -> None:
    project, owner, invitee = setup
    other = user_factory("other")
    send_invitation(db_session, project.id, owner, invitee.id)
    send_invitation(db_session, project.id, owner, other.id)

    assert len(list_project_invitations(db_session, project.id)) == 2
    pending = list_pending_invitations(db_session, invitee)
    assert [invitation.invited_user_id for invitation in pending] == [invitee.id]


def test_accept_and_reject_racing_on_one_token_only_one_wins(
    db_session: Session,
    setup,
    capture_outbound_email,
    token_from_email,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    project, owner, invitee = setup
    invitation = send_invitation(db_session, project.id, owner, invitee.id)
    token = token_from_email(capture_outbound_email[0], ACCEPT_INVITATION_PATH)
    other_session = Session(bind=db_session.get_bind())
    raced: list[bool] = []

    def read_slot_then_reject_elsewhere(record, purpose):
        slot = read_slot(record, purpose)
        if not raced:
            raced.append(True)
            reject_invitation(db_session, token)
        return slot

    monkeypatch.setattr("projectcamp.services.invitations.read_slot", read_slot_then_reject_elsewhere)
    try:
        with pytest.raises(TokenInvalidError):
            accept_invitation(other_session, token)
    finally:
        other_session.close()

    assert raced == [True]
    db_session.refresh(invitation)
    assert invitation.status is InvitationStatus.REJECTED
    assert get_membership(db_session, project.id, invitee.id) is None
