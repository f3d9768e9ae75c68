from inventory_api.models.user import User
from inventory_api.models.inventory import InventoryItem
from inventory_api.models.inventory_action import InventoryAction, ActionType
from inventory_api.models.audit_log import AuditLog

__all__ = [
    "User",
    "InventoryItem",
    "InventoryAction",
    "ActionType",
    "AuditLog",
]
