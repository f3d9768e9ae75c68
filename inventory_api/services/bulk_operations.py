"""
Bulk operation coordinator.

A batch is validated as a whole before anything is written: every failing
entry is reported by its 1-based position, and the batch then runs in a
single transaction so that either every entry is applied or none is.
Subscribers get one ``inventory:update`` per batch after the commit.
"""

from typing import Optional
import logging

from pydantic import BaseModel, ValidationError
from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_api.exceptions import (
    ConflictError,
    InvalidArgumentError,
    InventoryAPIError,
    NotFoundError,
    translate_store_error,
)
from inventory_api.models.inventory import InventoryItem
from inventory_api.models.inventory_action import ActionType, InventoryAction
from inventory_api.schemas.inventory import (
    BulkStockEntry,
    BulkUpdateEntry,
    InventoryItemCreate,
    item_to_response,
)
from inventory_api.services.stock_ledger import StockLedger
from inventory_api.services.websocket_manager import InventoryNotifier

logger = logging.getLogger(__name__)

MAX_BULK_CREATE = 50
MAX_BULK_UPDATE = 100
MAX_BULK_STOCK_UPDATE = 100
MAX_BULK_DELETE = 50


def format_validation_error(exc: ValidationError) -> str:
    """Flatten a pydantic error into one readable line."""
    parts = []
    for error in exc.errors():
        message = error["msg"]
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        field = ".".join(str(loc) for loc in error["loc"])
        parts.append(f"{field}: {message}" if field else message)
    return ", ".join(parts)


def check_batch_size(entries, limit: int, noun: str, verb: str) -> None:
    if not isinstance(entries, list) or not entries:
        raise InvalidArgumentError(f"{noun} array is required and must not be empty")
    if len(entries) > limit:
        raise InvalidArgumentError(f"Maximum {limit} items can be {verb} in a single bulk operation")


def _parse_entries(entries: list, schema: type[BaseModel], require_id: bool = False):
    """Validate every entry; errors come back as ``(position, reason)`` pairs."""
    parsed = []
    errors = []
    for index, entry in enumerate(entries, start=1):
        if not isinstance(entry, dict):
            errors.append((index, "Entry must be an object"))
            continue
        if require_id and not entry.get("id"):
            errors.append((index, "Item ID is required"))
            continue
        try:
            parsed.append(schema.model_validate(entry))
        except ValidationError as e:
            errors.append((index, format_validation_error(e)))
    return parsed, errors


def _raise_for_errors(label: str, errors: list) -> None:
    if errors:
        raise InvalidArgumentError("; ".join(f"{label} {index}: {reason}" for index, reason in errors))


def validate_bulk_create(entries: list) -> list[InventoryItemCreate]:
    """Schema and intra-batch duplicate checks for a bulk create."""
    check_batch_size(entries, MAX_BULK_CREATE, "Items", "created")

    errors = []
    seen: set[str] = set()
    for index, entry in enumerate(entries, start=1):
        sku = entry.get("sku") if isinstance(entry, dict) else None
        if not isinstance(sku, str):
            continue
        if sku in seen:
            errors.append((index, f"Duplicate SKU '{sku}' in batch"))
        else:
            seen.add(sku)

    parsed, schema_errors = _parse_entries(entries, InventoryItemCreate)
    errors.extend(schema_errors)
    errors.sort(key=lambda e: e[0])
    _raise_for_errors("Item", errors)
    return parsed


def validate_bulk_update(entries: list) -> list[BulkUpdateEntry]:
    check_batch_size(entries, MAX_BULK_UPDATE, "Updates", "updated")
    parsed, errors = _parse_entries(entries, BulkUpdateEntry, require_id=True)
    _raise_for_errors("Update", errors)
    return parsed


def validate_bulk_stock_update(entries: list) -> list[BulkStockEntry]:
    check_batch_size(entries, MAX_BULK_STOCK_UPDATE, "Updates", "updated")
    parsed, errors = _parse_entries(entries, BulkStockEntry, require_id=True)
    _raise_for_errors("Update", errors)
    return parsed


def validate_bulk_delete(ids: list) -> list[str]:
    check_batch_size(ids, MAX_BULK_DELETE, "IDs", "deleted")
    if any(not isinstance(i, str) or not i for i in ids):
        raise InvalidArgumentError("All IDs must be valid strings")
    return ids


class BulkOperationCoordinator:
    """Runs validated batches through an injected session."""

    def __init__(self, db: AsyncSession, notifier: Optional[InventoryNotifier] = None):
        self.db = db
        self.notifier = notifier

    async def _commit_or_raise(self, conflict_detail: str = "Resource already exists") -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise translate_store_error(e, conflict_detail)

    async def _announce(self, operation: str, items: list, actor_id: str, count: int) -> None:
        if self.notifier is None:
            return
        await self.notifier.inventory_updated(
            "bulk_" + operation,
            items,
            user_id=actor_id,
            details={"operation": operation, "count": count},
        )

    async def bulk_create(self, entries: list, actor_id: str) -> list[dict]:
        """Create up to 50 items; opening stock is recorded per item."""
        parsed = validate_bulk_create(entries)
        skus = [p.sku for p in parsed]

        result = await self.db.execute(select(InventoryItem.sku).where(InventoryItem.sku.in_(skus)))
        existing = set(result.scalars().all())
        if existing:
            duplicates = [sku for sku in skus if sku in existing]
            raise ConflictError(f"The following SKUs already exist: {', '.join(duplicates)}")

        created = []
        try:
            for data in parsed:
                item = InventoryItem(**data.model_dump())
                self.db.add(item)
                created.append(item)
            await self.db.flush()

            for item in created:
                if item.stock_level > 0:
                    self.db.add(
                        InventoryAction(
                            type=ActionType.ADD_STOCK.value,
                            quantity=item.stock_level,
                            notes="Initial stock from bulk creation",
                            item_id=item.id,
                            user_id=actor_id,
                        )
                    )
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise translate_store_error(e, "One or more SKUs already exist")
        await self._commit_or_raise("One or more SKUs already exist")

        logger.info("Bulk created %d items", len(created))
        items = [item_to_response(i) for i in created]
        await self._announce("create", items, actor_id, len(items))
        return items

    async def bulk_update(self, entries: list, actor_id: str) -> list[dict]:
        """Update descriptive fields of up to 100 items."""
        parsed = validate_bulk_update(entries)

        updated = []
        try:
            for entry in parsed:
                changes = entry.model_dump(exclude_unset=True, exclude={"id"})
                item = await self.db.get(InventoryItem, entry.id)
                if item is None:
                    raise NotFoundError("Inventory item", entry.id)

                min_stock = changes.get("min_stock", item.min_stock)
                max_stock = changes.get("max_stock", item.max_stock)
                if max_stock is not None and max_stock < min_stock:
                    raise InvalidArgumentError(
                        f"Item {entry.id}: Maximum stock must be greater than or equal to minimum stock"
                    )

                for field, value in changes.items():
                    setattr(item, field, value)
                self.db.add(
                    InventoryAction(
                        type=ActionType.ADJUST_STOCK.value,
                        quantity=0,
                        notes=f"Bulk update: {', '.join(changes)}",
                        item_id=item.id,
                        user_id=actor_id,
                    )
                )
                updated.append(item)
            await self.db.flush()
        except InventoryAPIError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise translate_store_error(e)
        await self._commit_or_raise()

        logger.info("Bulk updated %d items", len(updated))
        items = [item_to_response(i) for i in updated]
        await self._announce("update", items, actor_id, len(items))
        return items

    async def bulk_stock_update(self, entries: list, actor_id: str) -> list[dict]:
        """Set absolute stock levels for up to 100 items."""
        parsed = validate_bulk_stock_update(entries)
        ledger = StockLedger(self.db)

        updated = []
        try:
            for entry in parsed:
                item = await ledger.lock_item(entry.id)
                previous_level = item.stock_level
                item.stock_level = entry.stock_level
                self.db.add(
                    InventoryAction(
                        type=entry.type.value,
                        quantity=abs(entry.stock_level - previous_level),
                        notes=entry.notes or f"Bulk stock update from {previous_level} to {entry.stock_level}",
                        item_id=item.id,
                        user_id=actor_id,
                    )
                )
                updated.append(item)
            await self.db.flush()
        except InventoryAPIError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise translate_store_error(e)
        await self._commit_or_raise()

        logger.info("Bulk stock update applied to %d items", len(updated))
        items = [item_to_response(i) for i in updated]
        await self._announce("stock_update", items, actor_id, len(items))
        return items

    async def bulk_delete(self, ids: list, actor_id: str) -> dict:
        """Delete up to 50 items and their history; unknown ids are skipped."""
        ids = validate_bulk_delete(ids)

        try:
            await self.db.execute(delete(InventoryAction).where(InventoryAction.item_id.in_(ids)))
            result = await self.db.execute(delete(InventoryItem).where(InventoryItem.id.in_(ids)))
            deleted_count = result.rowcount or 0
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise translate_store_error(e)
        await self._commit_or_raise()

        logger.info("Bulk deleted %d of %d requested items", deleted_count, len(ids))
        await self._announce("delete", [{"id": i} for i in ids], actor_id, deleted_count)
        return {"deleted_count": deleted_count}
