"""API dependency exports."""

from projectcamp.db.session import get_db

from .auth import get_bearer_token, require_current_user
from .permissions import require_project_role

__all__ = [
    "get_bearer_token",
    "get_db",
    "require_current_user",
    "require_project_role",
]
