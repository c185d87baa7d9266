"""Identity boundary: token verification and caller roles."""

from .permissions import UserRole
from .schemas import Principal


__all__ = ["Principal", "UserRole"]
