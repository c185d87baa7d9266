"""Pydantic schemas for the resolved caller identity."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict

from .permissions import UserRole, is_admin


class Principal(BaseModel):
    """Resolved (learner id, role) pair for the current call.

    The core trusts this value and never re-validates identity.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID
    role: UserRole

    @property
    def is_admin(self) -> bool:
        """Check if the caller is an administrator."""
        return is_admin(self.role)
