"""Role model for coursetrack.

Two roles exist:
- ADMIN: authors the catalog (courses, modules, lessons)
- STUDENT: enrolls in courses and completes lessons
"""

from enum import Enum


class UserRole(str, Enum):
    """User roles, as issued by the identity service."""

    STUDENT = "student"
    ADMIN = "admin"


def parse_role(role: UserRole | str) -> UserRole | None:
    """Parse a role claim, tolerating the identity service's upper-case form.

    Returns:
        The matching UserRole, or None for unknown roles
    """
    if isinstance(role, UserRole):
        return role
    try:
        return UserRole(role.lower())
    except ValueError:
        return None


def is_admin(role: UserRole | str) -> bool:
    """Check if role is ADMIN."""
    return parse_role(role) == UserRole.ADMIN


def can_edit_catalog(role: UserRole | str) -> bool:
    """Structural catalog mutations are reserved to administrators."""
    return is_admin(role)
