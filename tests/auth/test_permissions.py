"""Tests for auth permissions."""

from uuid import uuid4

import pytest

from coursetrack.auth.permissions import (
    UserRole,
    can_edit_catalog,
    is_admin,
    parse_role,
)
from coursetrack.auth.schemas import Principal


class TestUserRole:
    """Tests for UserRole enum."""

    def test_role_values(self) -> None:
        """Roles should have correct string values."""
        assert UserRole.STUDENT.value == "student"
        assert UserRole.ADMIN.value == "admin"


class TestParseRole:
    """Tests for parse_role function."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("admin", UserRole.ADMIN),
            ("ADMIN", UserRole.ADMIN),
            ("Student", UserRole.STUDENT),
            (UserRole.STUDENT, UserRole.STUDENT),
        ],
    )
    def test_known_roles(self, raw, expected: UserRole) -> None:
        assert parse_role(raw) == expected

    def test_unknown_role(self) -> None:
        """Unknown roles parse to None instead of raising."""
        assert parse_role("instructor") is None


class TestCatalogPermissions:
    """Only administrators edit the catalog."""

    def test_admin_can_edit(self) -> None:
        assert is_admin("admin") is True
        assert can_edit_catalog(UserRole.ADMIN) is True

    def test_student_cannot_edit(self) -> None:
        assert is_admin(UserRole.STUDENT) is False
        assert can_edit_catalog("student") is False

    def test_principal_is_admin(self) -> None:
        assert Principal(id=uuid4(), role=UserRole.ADMIN).is_admin is True
        assert Principal(id=uuid4(), role=UserRole.STUDENT).is_admin is False
