"""API route modules."""

from . import auth
from . import health
from . import invitations

__all__ = ["auth", "health", "invitations"]
