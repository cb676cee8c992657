"""ORM model exports."""

from .project import Project
from .project_invitation import InvitationStatus, ProjectInvitation
from .project_member import ProjectMember, ProjectRole
from .user import User

__all__ = [
	"InvitationStatus",
	"Project",
	"ProjectInvitation",
	"ProjectMember",
	"ProjectRole",
	"User",
]
