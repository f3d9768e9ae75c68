"""
Test factories for generating realistic test data.

Uses factory_boy for declarative test data generation.
"""

from .user import UserPayloadFactory, AdminUserPayloadFactory
from .inventory import InventoryItemPayloadFactory, LowStockItemPayloadFactory

__all__ = [
    "UserPayloadFactory",
    "AdminUserPayloadFactory",
    "InventoryItemPayloadFactory",
    "LowStockItemPayloadFactory",
]
