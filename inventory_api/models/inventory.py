"""Inventory item model for warehouse stock tracking."""
from sqlalchemy import Column, String, DateTime, Text, Integer, Numeric, CheckConstraint
from uuid import uuid4

from inventory_api.database import Base, utcnow
from inventory_api.schemas.types import MONEY_PRECISION


class InventoryItem(Base):
    """A SKU-identified stock record.

    ``stock_level`` is only changed through the stock ledger or the bulk
    coordinator, both of which append an InventoryAction in the same
    transaction.
    """

    __tablename__ = "inventory_items"
    __table_args__ = (
        CheckConstraint("stock_level >= 0", name="ck_inventory_items_stock_level_non_negative"),
        CheckConstraint("min_stock >= 0", name="ck_inventory_items_min_stock_non_negative"),
        CheckConstraint("unit_price >= 0", name="ck_inventory_items_unit_price_non_negative"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))

    # Item identification
    sku = Column(String(50), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=False, index=True)
    location = Column(String(100), nullable=False, index=True)  # Warehouse, aisle, bin

    # Stock levels
    stock_level = Column(Integer, nullable=False, default=0)
    min_stock = Column(Integer, nullable=False, default=0)  # Reorder threshold
    max_stock = Column(Integer, nullable=True)

    # Pricing - exact decimal, never float
    unit_price = Column(Numeric(MONEY_PRECISION, 2), nullable=False, default=0)

    # Audit
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<InventoryItem {self.sku} - {self.name}>"

    @property
    def needs_reorder(self) -> bool:
        """Check if item is at or below its reorder threshold."""
        return (self.stock_level or 0) <= (self.min_stock or 0)
