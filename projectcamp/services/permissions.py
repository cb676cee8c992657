"""Project-scoped role checks."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from projectcamp.core.errors import ForbiddenError
from projectcamp.models.project_member import ProjectMember, ProjectRole

logger = logging.getLogger(__name__)


# role -> every role whose permissions it carries
ROLE_HIERARCHY: dict[ProjectRole, frozenset[ProjectRole]] = {
    ProjectRole.ADMIN: frozenset({ProjectRole.ADMIN, ProjectRole.PROJECT_ADMIN, ProjectRole.MEMBER}),
    ProjectRole.PROJECT_ADMIN: frozenset({ProjectRole.PROJECT_ADMIN, ProjectRole.MEMBER}),
    ProjectRole.MEMBER: frozenset({ProjectRole.MEMBER}),
}

ALL_ROLES: frozenset[ProjectRole] = frozenset(ProjectRole)


def effective_roles(role: ProjectRole) -> frozenset[ProjectRole]:
    return ROLE_HIERARCHY[role]


def role_satisfies(role: ProjectRole, required_roles: Iterable[ProjectRole]) -> bool:
    """Return whether ``role`` grants at least one of ``required_roles``."""

    return not effective_roles(role).isdisjoint(required_roles)


def get_membership(db: Session, project_id: UUID, user_id: UUID) -> Optional[ProjectMember]:
    statement = select(ProjectMember).where(
        ProjectMember.project_id == project_id,
        ProjectMember.user_id == user_id,
    )
    return db.execute(statement).scalar_one_or_none()


def check_project_permission(
    db: Session,
    project_id: UUID,
    user_id: UUID,
    required_roles: Iterable[ProjectRole],
) -> ProjectMember:
    """Return the caller's membership if its role satisfies ``required_roles``.

    Raises:
        ForbiddenError: with ``reason`` ``not_member`` when there is no
            membership, or ``insufficient_role`` when the role falls short.
    """

    required = frozenset(required_roles)
    membership = get_membership(db, project_id, user_id)
    if membership is None:
        logger.info("Denied user %s on project %s: not a member", user_id, project_id)
        raise ForbiddenError(reason=ForbiddenError.NOT_MEMBER)

    if not role_satisfies(membership.role, required):
        logger.info(
            "Denied user %s on project %s: role %s not in %s",
            user_id,
            project_id,
            membership.role.value,
            sorted(role.value for role in required),
        )
        raise ForbiddenError(
            "You do not have the required role for this project.",
            reason=ForbiddenError.INSUFFICIENT_ROLE,
        )

    return membership


__all__ = [
    "ALL_ROLES",
    "ROLE_HIERARCHY",
    "check_project_permission",
    "effective_roles",
    "get_membership",
    "role_satisfies",
]
