"""
Tests for the RBAC (Role-Based Access Control) module.
"""
import pytest
from unittest.mock import MagicMock

from inventory_api.exceptions import ForbiddenError
from inventory_api.security.rbac import (
    Role, Permission, ROLE_PERMISSIONS,
    get_user_role, get_user_permissions, has_permission,
    require_permission, require_admin,
)


def _user(role):
    user = MagicMock()
    user.id = "u1"
    user.role = role
    return user


class TestRolePermissions:
    """Test role-to-permissions mapping."""

    def test_user_works_with_inventory(self):
        user_perms = ROLE_PERMISSIONS[Role.USER]
        assert Permission.EDIT_INVENTORY in user_perms
        assert Permission.VIEW_REPORTS in user_perms
        assert Permission.MANAGE_USERS not in user_perms
        assert Permission.VIEW_AUDIT_LOGS not in user_perms

    def test_admin_has_all_permissions(self):
        assert ROLE_PERMISSIONS[Role.ADMIN] == set(Permission)


class TestGetUserRole:
    def test_known_roles(self):
        assert get_user_role(_user("ADMIN")) == Role.ADMIN
        assert get_user_role(_user("USER")) == Role.USER

    def test_unknown_role_falls_back_to_user(self):
        assert get_user_role(_user("superuser")) == Role.USER

    def test_permissions_follow_role(self):
        assert get_user_permissions(_user("ADMIN")) == set(Permission)
        assert has_permission(_user("USER"), Permission.VIEW_INVENTORY)
        assert not has_permission(_user("USER"), Permission.ADMIN_PANEL)


class TestRequire:
    def test_require_permission_denied(self):
        with pytest.raises(ForbiddenError) as exc_info:
            require_permission(_user("USER"), Permission.MANAGE_USERS)
        assert exc_info.value.status_code == 403
        assert "manage_users" in exc_info.value.detail

    def test_require_permission_granted(self):
        require_permission(_user("ADMIN"), Permission.MANAGE_USERS)

    def test_require_admin(self):
        require_admin(_user("ADMIN"))
        with pytest.raises(ForbiddenError) as exc_info:
            require_admin(_user("USER"))
        assert exc_info.value.detail == "Admin access required"
