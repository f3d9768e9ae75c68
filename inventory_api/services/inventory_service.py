"""Inventory item catalogue: lookup, listing and descriptive CRUD."""

from typing import Optional
import logging
import math

from sqlalchemy import select, func, delete, or_
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
from inventory_api.models.user import User
from inventory_api.schemas.inventory import (
    InventoryItemCreate,
    InventoryItemUpdate,
    action_to_response,
    item_to_response,
)
from inventory_api.services.websocket_manager import InventoryNotifier

logger = logging.getLogger(__name__)


def page_envelope(items: list, total: int, page: int, limit: int) -> dict:
    """Offset-pagination response body."""
    return {
        "items": items,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit) if limit else 0,
    }


class InventoryService:
    def __init__(self, db: AsyncSession, notifier: Optional[InventoryNotifier] = None):
        self.db = db
        self.notifier = notifier

    async def get_item(self, item_id: str) -> InventoryItem:
        item = await self.db.get(InventoryItem, item_id)
        if item is None:
            raise NotFoundError("Inventory item", item_id)
        return item

    async def get_by_sku(self, sku: str) -> Optional[InventoryItem]:
        result = await self.db.execute(select(InventoryItem).where(InventoryItem.sku == sku))
        return result.scalar_one_or_none()

    async def list_items(
        self,
        category: Optional[str] = None,
        location: Optional[str] = None,
        low_stock: bool = False,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 50,
    ) -> dict:
        """Filtered, paginated listing, most recently updated first."""
        query = select(InventoryItem)

        if category:
            query = query.where(InventoryItem.category.icontains(category, autoescape=True))
        if location:
            query = query.where(InventoryItem.location.icontains(location, autoescape=True))
        if search:
            query = query.where(
                or_(
                    InventoryItem.name.icontains(search, autoescape=True),
                    InventoryItem.sku.icontains(search, autoescape=True),
                    InventoryItem.description.icontains(search, autoescape=True),
                )
            )
        if low_stock:
            query = query.where(InventoryItem.stock_level <= InventoryItem.min_stock)

        total = (await self.db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0

        query = (
            query.order_by(InventoryItem.updated_at.desc(), InventoryItem.name.asc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        items = (await self.db.execute(query)).scalars().all()
        return page_envelope([item_to_response(i) for i in items], total, page, limit)

    async def categories(self) -> list[str]:
        result = await self.db.execute(
            select(InventoryItem.category).distinct().order_by(InventoryItem.category)
        )
        return list(result.scalars().all())

    async def locations(self) -> list[str]:
        result = await self.db.execute(
            select(InventoryItem.location).distinct().order_by(InventoryItem.location)
        )
        return list(result.scalars().all())

    async def create_item(self, data: InventoryItemCreate, actor_id: str) -> InventoryItem:
        """Create an item; opening stock is recorded as an ADD_STOCK action."""
        if await self.get_by_sku(data.sku) is not None:
            raise ConflictError(f"An item with SKU '{data.sku}' already exists")

        item = InventoryItem(**data.model_dump())
        try:
            self.db.add(item)
            await self.db.flush()
            if item.stock_level > 0:
                self.db.add(
                    InventoryAction(
                        type=ActionType.ADD_STOCK.value,
                        quantity=item.stock_level,
                        notes="Initial stock",
                        item_id=item.id,
                        user_id=actor_id,
                    )
                )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise translate_store_error(e, f"An item with SKU '{data.sku}' already exists")

        logger.info("Created inventory item %s (%s)", item.sku, item.id)
        if self.notifier is not None:
            await self.notifier.inventory_updated("created", item_to_response(item), user_id=actor_id)
        return item

    async def update_item(self, item_id: str, data: InventoryItemUpdate, actor_id: str) -> InventoryItem:
        """Update descriptive fields; stock level is untouched."""
        changes = data.model_dump(exclude_unset=True)
        try:
            item = await self.get_item(item_id)
            min_stock = changes.get("min_stock", item.min_stock)
            max_stock = changes.get("max_stock", item.max_stock)
            if max_stock is not None and max_stock < min_stock:
                raise InvalidArgumentError("Maximum stock must be greater than or equal to minimum stock")
            for field, value in changes.items():
                setattr(item, field, value)
            await self.db.commit()
        except InventoryAPIError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise translate_store_error(e)

        if self.notifier is not None:
            await self.notifier.inventory_updated(
                "updated", item_to_response(item), user_id=actor_id, details={"fields": sorted(changes)}
            )
        return item

    async def delete_item(self, item_id: str, actor_id: str) -> None:
        """Delete an item together with its action history."""
        try:
            item = await self.get_item(item_id)
            snapshot = item_to_response(item)
            await self.db.execute(delete(InventoryAction).where(InventoryAction.item_id == item_id))
            await self.db.delete(item)
            await self.db.commit()
        except InventoryAPIError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise translate_store_error(e)

        logger.info("Deleted inventory item %s", item_id)
        if self.notifier is not None:
            await self.notifier.inventory_updated("deleted", snapshot, user_id=actor_id)

    async def item_actions(self, item_id: str, page: int = 1, limit: int = 20) -> dict:
        """Movement history for one item, newest first."""
        await self.get_item(item_id)

        total = (
            await self.db.execute(
                select(func.count(InventoryAction.id)).where(InventoryAction.item_id == item_id)
            )
        ).scalar() or 0

        result = await self.db.execute(
            select(InventoryAction, User.name)
            .join(User, User.id == InventoryAction.user_id)
            .where(InventoryAction.item_id == item_id)
            .order_by(InventoryAction.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        actions = [action_to_response(action, user_name=user_name) for action, user_name in result.all()]
        return page_envelope(actions, total, page, limit)
