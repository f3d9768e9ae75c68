"""
Role-Based Access Control (RBAC) Module

Two roles exist: ADMIN manages users, audit logs and the admin dashboard;
USER works with inventory, alerts and reports.
"""

from enum import Enum
from typing import Set
import logging

from inventory_api.exceptions import ForbiddenError
from inventory_api.models.user import User

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """User roles."""
    USER = "USER"
    ADMIN = "ADMIN"


class Permission(str, Enum):
    """Fine-grained permissions."""
    VIEW_INVENTORY = "view_inventory"
    EDIT_INVENTORY = "edit_inventory"
    VIEW_REPORTS = "view_reports"
    MANAGE_USERS = "manage_users"
    VIEW_AUDIT_LOGS = "view_audit_logs"
    ADMIN_PANEL = "admin_panel"


ROLE_PERMISSIONS: dict[Role, Set[Permission]] = {
    Role.USER: {
        Permission.VIEW_INVENTORY,
        Permission.EDIT_INVENTORY,
        Permission.VIEW_REPORTS,
    },
    Role.ADMIN: set(Permission),
}


def get_user_role(user: User) -> Role:
    """Role stored on the user; unknown values fall back to USER."""
    try:
        return Role(user.role)
    except ValueError:
        return Role.USER


def get_user_permissions(user: User) -> Set[Permission]:
    return ROLE_PERMISSIONS.get(get_user_role(user), set())


def has_permission(user: User, permission: Permission) -> bool:
    return permission in get_user_permissions(user)


def require_permission(user: User, permission: Permission) -> None:
    """Raise ForbiddenError unless ``user`` holds ``permission``."""
    if not has_permission(user, permission):
        logger.warning(
            "Permission denied: user %s lacks %s", user.id, permission.value,
            extra={"user_id": user.id, "permission": permission.value},
        )
        raise ForbiddenError(f"Permission denied: requires {permission.value}")


def require_admin(user: User) -> None:
    """Raise ForbiddenError unless ``user`` is an ADMIN."""
    role = get_user_role(user)
    if role != Role.ADMIN:
        logger.warning(
            "Admin access denied for user %s", user.id,
            extra={"user_id": user.id, "role": role.value},
        )
        raise ForbiddenError("Admin access required")
