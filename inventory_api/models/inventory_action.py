from enum import Enum

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text
from uuid import uuid4

from inventory_api.database import Base, utcnow


class ActionType(str, Enum):
    """Kinds of stock movement recorded in the ledger."""

    ADD_STOCK = "ADD_STOCK"
    REMOVE_STOCK = "REMOVE_STOCK"
    ADJUST_STOCK = "ADJUST_STOCK"
    TRANSFER = "TRANSFER"


class InventoryAction(Base):
    """Append-only record of a stock movement.

    ``quantity`` is the magnitude of the movement, never the resulting level.
    """

    __tablename__ = "inventory_actions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    type = Column(String(20), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    notes = Column(Text, nullable=True)
    item_id = Column(String(36), ForeignKey("inventory_items.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<InventoryAction {self.id} item={self.item_id} {self.type} qty={self.quantity}>"
