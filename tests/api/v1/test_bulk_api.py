"""
Tests for bulk inventory endpoints (/api/v1/inventory/bulk/...).
"""
from sqlalchemy import select

from inventory_api.models.audit_log import AuditLog
from inventory_api.services.websocket_manager import INVENTORY_UPDATE
from tests.factories import InventoryItemPayloadFactory

BULK_PREFIX = "/api/v1/inventory/bulk"


class TestBulkCreate:
    async def test_create_batch(self, client, user_headers, notifier):
        items = InventoryItemPayloadFactory.build_batch(3)

        response = await client.post(f"{BULK_PREFIX}/create", json={"items": items}, headers=user_headers)

        assert response.status_code == 201
        assert len(response.json()["items"]) == 3
        assert response.json()["message"] == "Successfully created 3 items"
        assert len(notifier.of_type(INVENTORY_UPDATE)) == 1

    async def test_duplicate_sku_in_batch(self, client, user_headers):
        items = [InventoryItemPayloadFactory(sku="SAME-1"), InventoryItemPayloadFactory(sku="SAME-1")]

        response = await client.post(f"{BULK_PREFIX}/create", json={"items": items}, headers=user_headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "Item 2: Duplicate SKU 'SAME-1' in batch"

    async def test_existing_sku(self, client, user_headers, make_item):
        await make_item(sku="OLD-1")
        items = [InventoryItemPayloadFactory(sku="OLD-1")]

        response = await client.post(f"{BULK_PREFIX}/create", json={"items": items}, headers=user_headers)

        assert response.status_code == 409
        assert response.json()["detail"] == "The following SKUs already exist: OLD-1"

    async def test_empty_batch(self, client, user_headers):
        response = await client.post(f"{BULK_PREFIX}/create", json={"items": []}, headers=user_headers)
        assert response.status_code == 400

    async def test_admin_batch_audited(self, client, admin_headers, test_db):
        items = InventoryItemPayloadFactory.build_batch(2)

        await client.post(f"{BULK_PREFIX}/create", json={"items": items}, headers=admin_headers)

        (log,) = (await test_db.execute(select(AuditLog))).scalars().all()
        assert log.action == "BULK_CREATE_INVENTORY"
        assert len(log.changes["response_data"]["ids"]) == 2


class TestBulkUpdates:
    async def test_update(self, client, user_headers, make_item):
        a = await make_item()
        b = await make_item()

        response = await client.post(
            f"{BULK_PREFIX}/update",
            json={"updates": [{"id": a.id, "category": "Tools"}, {"id": b.id, "min_stock": 1}]},
            headers=user_headers,
        )

        assert response.status_code == 200
        assert [i["category"] for i in response.json()["items"]][0] == "Tools"

    async def test_update_missing_item(self, client, user_headers, make_item):
        a = await make_item(category="Hardware")

        response = await client.post(
            f"{BULK_PREFIX}/update",
            json={"updates": [{"id": a.id, "category": "Tools"}, {"id": "ghost", "category": "Tools"}]},
            headers=user_headers,
        )

        assert response.status_code == 404
        item = (await client.get(f"/api/v1/inventory/{a.id}", headers=user_headers)).json()
        assert item["category"] == "Hardware"

    async def test_update_rejects_null_min_stock(self, client, user_headers, make_item):
        item = await make_item(min_stock=10, max_stock=50)

        response = await client.post(
            f"{BULK_PREFIX}/update", json={"updates": [{"id": item.id, "min_stock": None}]}, headers=user_headers
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Update 1: min_stock: cannot be null"

    async def test_stock_update(self, client, user_headers, make_item):
        a = await make_item(stock_level=10)

        response = await client.post(
            f"{BULK_PREFIX}/stock", json={"updates": [{"id": a.id, "stock_level": 42}]}, headers=user_headers
        )

        assert response.status_code == 200
        assert response.json()["items"][0]["stock_level"] == 42

    async def test_stock_update_reports_every_bad_entry(self, client, user_headers):
        response = await client.post(
            f"{BULK_PREFIX}/stock",
            json={"updates": [{"stock_level": 1}, {"id": "x", "stock_level": -3}]},
            headers=user_headers,
        )

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail.startswith("Update 1: Item ID is required; Update 2: ")


class TestBulkDelete:
    async def test_delete_skips_missing(self, client, user_headers, make_item):
        a = await make_item()
        b = await make_item()

        response = await client.request(
            "DELETE", f"{BULK_PREFIX}/delete", json={"ids": [a.id, b.id, "missing"]}, headers=user_headers
        )

        assert response.status_code == 200
        assert response.json()["deleted_count"] == 2

    async def test_delete_rejects_non_string_ids(self, client, user_headers):
        response = await client.request(
            "DELETE", f"{BULK_PREFIX}/delete", json={"ids": ["a", ""]}, headers=user_headers
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "All IDs must be valid strings"
