"""
Stock ledger.

The only path that changes an item's stock level outside bulk operations.
Each mutation locks the item row, computes the new level, writes the item
and appends exactly one InventoryAction in the same transaction. Subscribers
are told after the commit.
"""

from typing import Callable, Optional
import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_api.exceptions import (
    InsufficientStockError,
    InvalidArgumentError,
    InventoryAPIError,
    NotFoundError,
    translate_store_error,
)
from inventory_api.models.inventory import InventoryItem
from inventory_api.models.inventory_action import ActionType, InventoryAction
from inventory_api.schemas.inventory import item_to_response
from inventory_api.services.alert_service import build_alert
from inventory_api.services.websocket_manager import InventoryNotifier

logger = logging.getLogger(__name__)

VALID_TYPES_MESSAGE = "Valid action type is required (ADD_STOCK, REMOVE_STOCK, ADJUST_STOCK, TRANSFER)"


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def parse_action_type(value) -> ActionType:
    """Coerce a raw action type, raising InvalidArgumentError when unknown."""
    if isinstance(value, ActionType):
        return value
    try:
        return ActionType(value)
    except ValueError:
        raise InvalidArgumentError(VALID_TYPES_MESSAGE) from None


def compute_new_level(action_type: ActionType, current: int, quantity: int) -> tuple[int, int]:
    """Return ``(new_level, action_quantity)`` for a stock action.

    ADD_STOCK adds, REMOVE_STOCK and TRANSFER subtract (transfer-out only),
    ADJUST_STOCK treats ``quantity`` as the target level and records the
    distance moved.
    """
    action_type = parse_action_type(action_type)

    if action_type == ActionType.ADJUST_STOCK:
        if not _is_int(quantity) or quantity < 0:
            raise InvalidArgumentError("Stock level must be a non-negative integer")
        return quantity, abs(quantity - current)

    if not _is_int(quantity) or quantity <= 0:
        raise InvalidArgumentError("Quantity must be a positive integer")

    if action_type == ActionType.ADD_STOCK:
        return current + quantity, quantity

    new_level = current - quantity
    if new_level < 0:
        raise InsufficientStockError(current, quantity, transfer=action_type == ActionType.TRANSFER)
    return new_level, quantity


def lock_item_statement(item_id: str):
    """SELECT ... FOR UPDATE for one item, refreshing any identity-map copy."""
    return (
        select(InventoryItem)
        .where(InventoryItem.id == item_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )


class StockLedger:
    """Applies stock movements through an injected session."""

    def __init__(self, db: AsyncSession, notifier: Optional[InventoryNotifier] = None):
        self.db = db
        self.notifier = notifier

    async def lock_item(self, item_id: str) -> InventoryItem:
        """Load an item with a row lock held until the transaction ends."""
        result = await self.db.execute(lock_item_statement(item_id))
        item = result.scalar_one_or_none()
        if item is None:
            raise NotFoundError("Inventory item", item_id)
        return item

    async def apply_stock_action(
        self,
        item_id: str,
        action_type,
        quantity,
        notes: Optional[str],
        actor_id: str,
    ) -> InventoryItem:
        """Apply one stock movement and return the updated item."""
        action_type = parse_action_type(action_type)
        return await self._mutate(item_id, action_type, quantity, actor_id, lambda old, new: notes)

    async def adjust_stock_level(
        self,
        item_id: str,
        target,
        notes: Optional[str],
        actor_id: str,
    ) -> InventoryItem:
        """Set an absolute stock level (quick adjust)."""
        return await self._mutate(
            item_id,
            ActionType.ADJUST_STOCK,
            target,
            actor_id,
            lambda old, new: notes or f"Stock adjusted from {old} to {new}",
        )

    async def _mutate(
        self,
        item_id: str,
        action_type: ActionType,
        quantity,
        actor_id: str,
        make_note: Callable[[int, int], Optional[str]],
    ) -> InventoryItem:
        try:
            item = await self.lock_item(item_id)
            previous_level = item.stock_level
            new_level, moved = compute_new_level(action_type, previous_level, quantity)

            item.stock_level = new_level
            self.db.add(
                InventoryAction(
                    type=action_type.value,
                    quantity=moved,
                    notes=make_note(previous_level, new_level),
                    item_id=item.id,
                    user_id=actor_id,
                )
            )
            await self.db.commit()
        except InventoryAPIError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise translate_store_error(e)

        logger.info(
            "Stock %s on %s: %d -> %d by %s",
            action_type.value, item.sku, previous_level, new_level, actor_id,
        )
        await self._publish(item, actor_id, action_type, moved, previous_level, new_level)
        return item

    async def _publish(self, item, actor_id, action_type, moved, previous_level, new_level) -> None:
        if self.notifier is None:
            return
        await self.notifier.inventory_updated(
            "stock_updated",
            item_to_response(item),
            user_id=actor_id,
            details={
                "action_type": action_type.value,
                "quantity": moved,
                "previous_level": previous_level,
                "new_level": new_level,
            },
        )
        alert = build_alert(item)
        if alert is not None:
            await self.notifier.alert_raised(alert.to_dict())
