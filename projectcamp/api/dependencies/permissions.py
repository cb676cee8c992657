"""Project role dependencies."""

from __future__ import annotations

from collections.abc import Callable
from typing import Annotated
from uuid import UUID

from fastapi import Depends
from sqlalchemy.orm import Session

from projectcamp.api.dependencies.auth import require_current_user
from projectcamp.db.session import get_db
from projectcamp.models.project_member import ProjectMember, ProjectRole
from projectcamp.models.user import User
from projectcamp.services.permissions import ALL_ROLES, check_project_permission


def require_project_role(*roles: ProjectRole) -> Callable[..., ProjectMember]:
    """Build a dependency that admits members of ``project_id`` holding one of ``roles``.

    With no roles given, any membership is enough.
    """

    required = frozenset(roles) or ALL_ROLES

    def dependency(
        project_id: UUID,
        current_user: Annotated[User, Depends(require_current_user)],
        db: Annotated[Session, Depends(get_db)],
    ) -> ProjectMember:
        return check_project_permission(db, project_id, current_user.id, required)

    return dependency


__all__ = ["require_project_role"]
