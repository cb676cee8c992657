"""Minimal project helpers needed by memberships and invitations."""

from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from projectcamp.db.session import commit_session
from projectcamp.models.project import Project
from projectcamp.models.project_member import ProjectMember, ProjectRole
from projectcamp.models.user import User

logger = logging.getLogger(__name__)


def get_project(db: Session, project_id: UUID) -> Optional[Project]:
    return db.get(Project, project_id)


def create_project(
    db: Session,
    owner: User,
    name: str,
    description: Optional[str] = None,
) -> Project:
    """Create a project and make ``owner`` its admin."""

    project = Project(name=name.strip(), description=description, created_by_id=owner.id)
    project.members.append(ProjectMember(user_id=owner.id, role=ProjectRole.ADMIN))
    db.add(project)
    commit_session(db, conflict_message="A project with this name already exists.")
    db.refresh(project)
    logger.info("User %s created project %s", owner.id, project.id)
    return project


__all__ = ["create_project", "get_project"]
