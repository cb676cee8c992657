"""Project invitation ORM model."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from typing import Optional, TYPE_CHECKING

from sqlalchemy import DateTime, Enum, ForeignKey, Index, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from projectcamp.db.base import Base
from projectcamp.models.project_member import ProjectRole

if TYPE_CHECKING:
    from projectcamp.models.project import Project
    from projectcamp.models.user import User


class InvitationStatus(str, enum.Enum):
    """Lifecycle states of a project invitation."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


class ProjectInvitation(Base):
    """An invitation for a user to join a project, redeemed by a hashed token."""

    __tablename__ = "project_invitations"
    __table_args__ = (
        Index("ix_project_invitations_project_id", "project_id"),
        Index("ix_project_invitations_invited_user_id", "invited_user_id"),
        Index("ix_project_invitations_invitation_token_hash", "invitation_token_hash"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )
    invited_user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    invited_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    role: Mapped[ProjectRole] = mapped_column(
        Enum(
            ProjectRole,
            name="project_role",
            values_callable=lambda roles: [role.value for role in roles],
        ),
        nullable=False,
        default=ProjectRole.MEMBER,
    )
    status: Mapped[InvitationStatus] = mapped_column(
        Enum(
            InvitationStatus,
            name="invitation_status",
            values_callable=lambda statuses: [status.value for status in statuses],
        ),
        nullable=False,
        default=InvitationStatus.PENDING,
    )
    invitation_token_hash: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    invitation_token_expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    project: Mapped["Project"] = relationship("Project", back_populates="invitations")
    invited_user: Mapped["User"] = relationship("User", foreign_keys=[invited_user_id])
    invited_by: Mapped[Optional["User"]] = relationship("User", foreign_keys=[invited_by_id])


__all__ = ["InvitationStatus", "ProjectInvitation"]
