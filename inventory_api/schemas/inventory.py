"""Inventory schemas for request/response validation."""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional

from inventory_api.models.inventory_action import ActionType
from inventory_api.schemas.types import Money, money_out

SKU_PATTERN = r"^[A-Z0-9_-]+$"

# Columns that may be omitted from a partial update but never set to null.
NON_NULLABLE_FIELDS = ("name", "category", "location", "min_stock", "unit_price")


def _strip_min_two(value: Optional[str], field_name: str) -> Optional[str]:
    if value is None:
        return value
    value = value.strip()
    if len(value) < 2:
        raise ValueError(f"{field_name} must be at least 2 characters long")
    return value


class InventoryItemBase(BaseModel):
    """Fields shared by create requests and bulk-create entries."""

    name: str = Field(..., max_length=255)
    description: Optional[str] = None
    sku: str = Field(..., min_length=3, max_length=50, pattern=SKU_PATTERN)
    category: str = Field(..., max_length=100)
    location: str = Field(..., max_length=100)
    stock_level: int = Field(0, ge=0)
    min_stock: int = Field(0, ge=0)
    max_stock: Optional[int] = Field(None, ge=0)
    unit_price: Money

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return _strip_min_two(v, "Item name")

    @field_validator("category")
    @classmethod
    def validate_category(cls, v):
        return _strip_min_two(v, "Category")

    @field_validator("location")
    @classmethod
    def validate_location(cls, v):
        return _strip_min_two(v, "Location")

    @model_validator(mode="after")
    def check_stock_bounds(self):
        if self.max_stock is not None and self.max_stock < self.min_stock:
            raise ValueError("Maximum stock must be greater than or equal to minimum stock")
        return self


class InventoryItemCreate(InventoryItemBase):
    """Schema for creating an inventory item."""

    pass


class InventoryItemUpdate(BaseModel):
    """Partial update of descriptive fields.

    SKU and stock level are not updatable here; stock moves only through
    stock actions.
    """

    name: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    location: Optional[str] = Field(None, max_length=100)
    min_stock: Optional[int] = Field(None, ge=0)
    max_stock: Optional[int] = Field(None, ge=0)
    unit_price: Optional[Money] = None

    @field_validator(*NON_NULLABLE_FIELDS, mode="before")
    @classmethod
    def reject_null(cls, v):
        if v is None:
            raise ValueError("cannot be null")
        return v

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return _strip_min_two(v, "Item name")

    @field_validator("category")
    @classmethod
    def validate_category(cls, v):
        return _strip_min_two(v, "Category")

    @field_validator("location")
    @classmethod
    def validate_location(cls, v):
        return _strip_min_two(v, "Location")

    @model_validator(mode="after")
    def check_stock_bounds(self):
        if self.max_stock is not None and self.min_stock is not None and self.max_stock < self.min_stock:
            raise ValueError("Maximum stock must be greater than or equal to minimum stock")
        return self


class StockActionRequest(BaseModel):
    """Body of POST /inventory/{id}/stock.

    ``type`` and ``quantity`` are checked by the stock ledger so that a bad
    action type or a non-positive quantity is reported as a 400.
    """

    type: str
    quantity: int
    notes: Optional[str] = None


class StockAdjustRequest(BaseModel):
    """Body of POST /inventory/{id}/adjust (set an absolute level)."""

    stock_level: int
    notes: Optional[str] = None


# Bulk operations. Entries are kept loosely typed so that the coordinator can
# report every failing entry by position instead of a single 422.

class BulkCreateRequest(BaseModel):
    items: list[dict]


class BulkUpdateRequest(BaseModel):
    updates: list[dict]


class BulkStockUpdateRequest(BaseModel):
    updates: list[dict]


class BulkDeleteRequest(BaseModel):
    ids: list


class BulkStockEntry(BaseModel):
    """A single entry of a bulk stock update."""

    id: str = Field(..., min_length=1)
    stock_level: int = Field(..., ge=0)
    type: ActionType = ActionType.ADJUST_STOCK
    notes: Optional[str] = None


class BulkUpdateEntry(InventoryItemUpdate):
    """A single entry of a bulk metadata update."""

    id: str = Field(..., min_length=1)


def item_to_response(item) -> dict:
    """Convert InventoryItem model to response dict."""
    stock_level = item.stock_level or 0
    min_stock = item.min_stock or 0
    return {
        "id": str(item.id),
        "sku": item.sku,
        "name": item.name,
        "description": item.description,
        "category": item.category,
        "location": item.location,
        "stock_level": stock_level,
        "min_stock": min_stock,
        "max_stock": item.max_stock,
        "unit_price": money_out(item.unit_price),
        "needs_reorder": stock_level <= min_stock,
        "created_at": item.created_at.isoformat() if item.created_at else None,
        "updated_at": item.updated_at.isoformat() if item.updated_at else None,
    }


def action_to_response(action, user_name: Optional[str] = None, item_name: Optional[str] = None,
                       item_sku: Optional[str] = None) -> dict:
    """Convert InventoryAction model (plus optional joined names) to a dict."""
    data = {
        "id": str(action.id),
        "type": action.type,
        "quantity": action.quantity,
        "notes": action.notes,
        "item_id": action.item_id,
        "user_id": action.user_id,
        "created_at": action.created_at.isoformat() if action.created_at else None,
    }
    if user_name is not None:
        data["user_name"] = user_name
    if item_name is not None:
        data["item_name"] = item_name
    if item_sku is not None:
        data["item_sku"] = item_sku
    return data
