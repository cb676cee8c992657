"""Public API package exports."""

from .dependencies import require_current_user, require_project_role
from projectcamp.api.routes.auth import router as auth_router
from projectcamp.api.routes.health import router as health_router
from projectcamp.api.routes.invitations import router as invitations_router

__all__ = [
    "auth_router",
    "health_router",
    "invitations_router",
    "require_current_user",
    "require_project_role",
]
