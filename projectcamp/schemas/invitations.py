"""Pydantic schemas for project invitations and memberships."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from projectcamp.models.project_invitation import InvitationStatus
from projectcamp.models.project_member import ProjectRole


class InvitationCreate(BaseModel):
    """Payload for inviting an existing user into a project."""

    user_id: uuid.UUID
    role: ProjectRole = ProjectRole.MEMBER

    model_config = ConfigDict(frozen=True)


class InvitationRead(BaseModel):
    """Serialized invitation; never includes the token digest."""

    id: uuid.UUID
    project_id: uuid.UUID
    invited_user_id: uuid.UUID
    invited_by_id: Optional[uuid.UUID] = None
    role: ProjectRole
    status: InvitationStatus
    created_at: datetime

    model_config = ConfigDict(from_attributes=True, frozen=True)


class MembershipRead(BaseModel):
    """Serialized project membership."""

    project_id: uuid.UUID
    user_id: uuid.UUID
    role: ProjectRole
    created_at: datetime

    model_config = ConfigDict(from_attributes=True, frozen=True)


__all__ = ["InvitationCreate", "InvitationRead", "MembershipRead"]
