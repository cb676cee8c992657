"""Project invitation API routes."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, Response, status
from sqlalchemy.orm import Session

from projectcamp.api.dependencies import get_db, require_current_user, require_project_role
from projectcamp.models.project_invitation import ProjectInvitation
from projectcamp.models.project_member import ProjectMember, ProjectRole
from projectcamp.models.user import User
from projectcamp.schemas.invitations import InvitationCreate, InvitationRead, MembershipRead
from projectcamp.services import invitations as invitation_service

router = APIRouter(tags=["invitations"])

_require_project_manager = require_project_role(ProjectRole.ADMIN, ProjectRole.PROJECT_ADMIN)
_require_project_member = require_project_role()


@router.post(
    "/projects/{project_id}",
    response_model=InvitationRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(_require_project_manager)],
)
def send_invitation(
    project_id: uuid.UUID,
    payload: InvitationCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_current_user),
    db: Session = Depends(get_db),
) -> ProjectInvitation:
    """Invite a user into the project with the requested role."""

    return invitation_service.send_invitation(
        db,
        project_id,
        current_user,
        payload.user_id,
        payload.role,
        background_tasks=background_tasks,
    )


@router.get(
    "/projects/{project_id}",
    response_model=list[InvitationRead],
    dependencies=[Depends(_require_project_member)],
)
def list_project_invitations(
    project_id: uuid.UUID,
    db: Session = Depends(get_db),
) -> list[ProjectInvitation]:
    return invitation_service.list_project_invitations(db, project_id)


@router.post(
    "/projects/{project_id}/{invitation_id}/resend",
    response_model=InvitationRead,
    dependencies=[Depends(_require_project_manager)],
)
def resend_invitation(
    project_id: uuid.UUID,
    invitation_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_current_user),
    db: Session = Depends(get_db),
) -> ProjectInvitation:
    """Reissue the invitation token and email a reminder."""

    return invitation_service.resend_invitation(
        db,
        project_id,
        invitation_id,
        current_user,
        background_tasks=background_tasks,
    )


@router.delete(
    "/projects/{project_id}/{invitation_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    dependencies=[Depends(_require_project_manager)],
)
def cancel_invitation(
    project_id: uuid.UUID,
    invitation_id: uuid.UUID,
    db: Session = Depends(get_db),
) -> Response:
    invitation_service.cancel_invitation(db, project_id, invitation_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/pending", response_model=list[InvitationRead])
def list_pending_invitations(
    current_user: User = Depends(require_current_user),
    db: Session = Depends(get_db),
) -> list[ProjectInvitation]:
    """List invitations still waiting for the caller's answer."""

    return invitation_service.list_pending_invitations(db, current_user)


@router.get("/accept/{token}", response_model=MembershipRead)
def accept_invitation(token: str, db: Session = Depends(get_db)) -> ProjectMember:
    """Redeem an invitation link and join the project."""

    return invitation_service.accept_invitation(db, token)


@router.get("/reject/{token}", response_model=InvitationRead)
def reject_invitation(token: str, db: Session = Depends(get_db)) -> ProjectInvitation:
    """Decline an invitation link."""

    return invitation_service.reject_invitation(db, token)


__all__ = ["router"]
