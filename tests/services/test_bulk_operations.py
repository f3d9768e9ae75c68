"""
Tests for the bulk operation coordinator.
"""
import pytest
from sqlalchemy import select, func

from inventory_api.exceptions import ConflictError, InvalidArgumentError, NotFoundError
from inventory_api.models.inventory import InventoryItem
from inventory_api.models.inventory_action import InventoryAction
from inventory_api.services.bulk_operations import (
    BulkOperationCoordinator,
    MAX_BULK_CREATE,
    validate_bulk_create,
    validate_bulk_delete,
    validate_bulk_stock_update,
    validate_bulk_update,
)
from inventory_api.services.websocket_manager import INVENTORY_UPDATE
from tests.factories import InventoryItemPayloadFactory


class TestValidation:
    def test_empty_batch(self):
        with pytest.raises(InvalidArgumentError) as exc_info:
            validate_bulk_create([])
        assert exc_info.value.detail == "Items array is required and must not be empty"

    def test_oversized_batch(self):
        entries = InventoryItemPayloadFactory.build_batch(MAX_BULK_CREATE + 1)
        with pytest.raises(InvalidArgumentError) as exc_info:
            validate_bulk_create(entries)
        assert exc_info.value.detail == "Maximum 50 items can be created in a single bulk operation"

    def test_duplicate_sku_in_batch(self):
        entries = [InventoryItemPayloadFactory(sku="DUP-1"), InventoryItemPayloadFactory(sku="DUP-1")]
        with pytest.raises(InvalidArgumentError) as exc_info:
            validate_bulk_create(entries)
        assert exc_info.value.detail == "Item 2: Duplicate SKU 'DUP-1' in batch"

    def test_every_failing_entry_reported(self):
        entries = [
            InventoryItemPayloadFactory(),
            InventoryItemPayloadFactory(name="x"),
            InventoryItemPayloadFactory(sku="lowercase"),
        ]
        with pytest.raises(InvalidArgumentError) as exc_info:
            validate_bulk_create(entries)
        detail = exc_info.value.detail
        assert detail.startswith("Item 2: ")
        assert "Item name must be at least 2 characters long" in detail
        assert "; Item 3: " in detail

    def test_update_requires_id(self):
        with pytest.raises(InvalidArgumentError) as exc_info:
            validate_bulk_update([{"name": "New name"}])
        assert exc_info.value.detail == "Update 1: Item ID is required"

    @pytest.mark.parametrize("field", ["name", "category", "location", "min_stock", "unit_price"])
    def test_update_rejects_null_for_required_columns(self, field):
        with pytest.raises(InvalidArgumentError) as exc_info:
            validate_bulk_update([{"id": "a", field: None}])
        assert exc_info.value.detail == f"Update 1: {field}: cannot be null"

    def test_update_allows_clearing_optional_columns(self):
        (entry,) = validate_bulk_update([{"id": "a", "description": None, "max_stock": None}])
        assert entry.model_dump(exclude_unset=True) == {"id": "a", "description": None, "max_stock": None}

    def test_stock_update_rejects_negative_level(self):
        with pytest.raises(InvalidArgumentError) as exc_info:
            validate_bulk_stock_update([{"id": "a", "stock_level": -1}])
        assert exc_info.value.detail.startswith("Update 1: stock_level")

    def test_stock_update_rejects_unknown_type(self):
        with pytest.raises(InvalidArgumentError):
            validate_bulk_stock_update([{"id": "a", "stock_level": 1, "type": "RESTOCK"}])

    def test_delete_ids_must_be_strings(self):
        with pytest.raises(InvalidArgumentError) as exc_info:
            validate_bulk_delete(["a", 3])
        assert exc_info.value.detail == "All IDs must be valid strings"


class TestBulkCreate:
    async def test_creates_items_and_opening_actions(self, test_db, test_user, notifier):
        entries = [
            InventoryItemPayloadFactory(sku="NEW-1", stock_level=10),
            InventoryItemPayloadFactory(sku="NEW-2", stock_level=0),
        ]

        created = await BulkOperationCoordinator(test_db, notifier).bulk_create(entries, test_user.id)

        assert [i["sku"] for i in created] == ["NEW-1", "NEW-2"]
        actions = (await test_db.execute(select(InventoryAction))).scalars().all()
        assert len(actions) == 1
        assert actions[0].quantity == 10
        assert actions[0].notes == "Initial stock from bulk creation"
        (update,) = notifier.of_type(INVENTORY_UPDATE)
        assert update["type"] == "bulk_create"
        assert update["details"]["count"] == 2

    async def test_existing_sku_conflicts(self, test_db, test_user, make_item):
        await make_item(sku="TAKEN-1")
        entries = [InventoryItemPayloadFactory(sku="FREE-1"), InventoryItemPayloadFactory(sku="TAKEN-1")]

        with pytest.raises(ConflictError) as exc_info:
            await BulkOperationCoordinator(test_db).bulk_create(entries, test_user.id)

        assert exc_info.value.detail == "The following SKUs already exist: TAKEN-1"
        count = (await test_db.execute(select(func.count(InventoryItem.id)))).scalar()
        assert count == 1


class TestBulkUpdate:
    async def test_updates_fields_and_records_zero_quantity_action(self, test_db, test_user, make_item):
        item = await make_item(name="Old", stock_level=40)

        updated = await BulkOperationCoordinator(test_db).bulk_update(
            [{"id": item.id, "name": "Renamed", "location": "Dock C"}], test_user.id
        )

        assert updated[0]["name"] == "Renamed"
        assert updated[0]["stock_level"] == 40
        (action,) = (await test_db.execute(select(InventoryAction))).scalars().all()
        assert action.type == "ADJUST_STOCK"
        assert action.quantity == 0
        assert action.notes == "Bulk update: name, location"

    async def test_missing_item_aborts_batch(self, test_db, test_user, make_item):
        item = await make_item(name="Original")

        with pytest.raises(NotFoundError):
            await BulkOperationCoordinator(test_db).bulk_update(
                [{"id": item.id, "name": "Changed"}, {"id": "missing", "name": "Nope"}], test_user.id
            )

        refreshed = (await test_db.execute(select(InventoryItem).where(InventoryItem.id == item.id))).scalar_one()
        assert refreshed.name == "Original"
        assert (await test_db.execute(select(func.count(InventoryAction.id)))).scalar() == 0


    async def test_null_min_stock_rejected_before_any_write(self, test_db, test_user, make_item):
        item = await make_item(min_stock=10, max_stock=50)

        with pytest.raises(InvalidArgumentError):
            await BulkOperationCoordinator(test_db).bulk_update(
                [{"id": item.id, "name": "Renamed"}, {"id": item.id, "min_stock": None}], test_user.id
            )

        refreshed = (await test_db.execute(select(InventoryItem).where(InventoryItem.id == item.id))).scalar_one()
        assert (refreshed.name, refreshed.min_stock) == (item.name, 10)
        assert (await test_db.execute(select(func.count(InventoryAction.id)))).scalar() == 0

class TestBulkStockUpdate:
    async def test_sets_levels_and_records_distance(self, test_db, test_user, make_item, notifier):
        a = await make_item(stock_level=10)
        b = await make_item(stock_level=50)

        updated = await BulkOperationCoordinator(test_db, notifier).bulk_stock_update(
            [{"id": a.id, "stock_level": 25}, {"id": b.id, "stock_level": 5, "type": "REMOVE_STOCK", "notes": "damaged"}],
            test_user.id,
        )

        assert [i["stock_level"] for i in updated] == [25, 5]
        actions = {x.item_id: x for x in (await test_db.execute(select(InventoryAction))).scalars().all()}
        assert (actions[a.id].type, actions[a.id].quantity) == ("ADJUST_STOCK", 15)
        assert actions[a.id].notes == "Bulk stock update from 10 to 25"
        assert (actions[b.id].type, actions[b.id].quantity, actions[b.id].notes) == ("REMOVE_STOCK", 45, "damaged")
        assert notifier.of_type(INVENTORY_UPDATE)[0]["type"] == "bulk_stock_update"

    async def test_missing_item_aborts_batch(self, test_db, test_user, make_item):
        a = await make_item(stock_level=10)

        with pytest.raises(NotFoundError):
            await BulkOperationCoordinator(test_db).bulk_stock_update(
                [{"id": a.id, "stock_level": 99}, {"id": "missing", "stock_level": 1}], test_user.id
            )

        refreshed = (await test_db.execute(select(InventoryItem).where(InventoryItem.id == a.id))).scalar_one()
        assert refreshed.stock_level == 10


class TestBulkDelete:
    async def test_skips_unknown_ids(self, test_db, test_user, make_item, notifier):
        a = await make_item()
        b = await make_item()
        test_db.add(InventoryAction(type="ADD_STOCK", quantity=1, item_id=a.id, user_id=test_user.id))
        await test_db.commit()

        result = await BulkOperationCoordinator(test_db, notifier).bulk_delete([a.id, b.id, "missing"], test_user.id)

        assert result == {"deleted_count": 2}
        assert (await test_db.execute(select(func.count(InventoryItem.id)))).scalar() == 0
        assert (await test_db.execute(select(func.count(InventoryAction.id)))).scalar() == 0
        assert notifier.of_type(INVENTORY_UPDATE)[0]["details"]["count"] == 2
