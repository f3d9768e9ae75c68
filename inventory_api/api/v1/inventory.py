"""Inventory API - items, stock movements, low-stock alerts and bulk operations.

Static paths (``/categories``, ``/alerts``, ``/bulk/...``) are declared before
``/{item_id}`` so they are not captured by the item route.
"""

from fastapi import APIRouter, Query, status
from typing import Optional
import logging

from inventory_api.api.deps import DbSession, CurrentUser, Notifier, Auditor
from inventory_api.exceptions import InvalidArgumentError
from inventory_api.schemas.inventory import (
    InventoryItemCreate,
    InventoryItemUpdate,
    StockActionRequest,
    StockAdjustRequest,
    BulkCreateRequest,
    BulkUpdateRequest,
    BulkStockUpdateRequest,
    BulkDeleteRequest,
    item_to_response,
)
from inventory_api.services.alert_service import AlertService, Severity, run_alert_check
from inventory_api.services.bulk_operations import BulkOperationCoordinator
from inventory_api.services.inventory_service import InventoryService
from inventory_api.services.stock_ledger import StockLedger

logger = logging.getLogger(__name__)
router = APIRouter()

RESOURCE_TYPE = "InventoryItem"


@router.get("")
async def list_inventory(
    db: DbSession,
    current_user: CurrentUser,
    category: Optional[str] = None,
    location: Optional[str] = None,
    low_stock: bool = False,
    search: Optional[str] = None,  # name, SKU or description
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
):
    """List inventory items with pagination and filtering."""
    return await InventoryService(db).list_items(
        category=category, location=location, low_stock=low_stock, search=search, page=page, limit=limit
    )


@router.get("/categories")
async def list_categories(db: DbSession, current_user: CurrentUser) -> list[str]:
    return await InventoryService(db).categories()


@router.get("/locations")
async def list_locations(db: DbSession, current_user: CurrentUser) -> list[str]:
    return await InventoryService(db).locations()


@router.get("/low-stock")
async def list_low_stock(db: DbSession, current_user: CurrentUser):
    """Items at or below their reorder threshold."""
    items = await AlertService(db).low_stock_items()
    return [item_to_response(i) for i in items]


# Alerts


@router.get("/alerts")
async def list_alerts(
    db: DbSession,
    current_user: CurrentUser,
    severity: Optional[str] = None,
    category: Optional[str] = None,
    location: Optional[str] = None,
):
    """Current alerts, optionally narrowed by one of severity, category or location."""
    service = AlertService(db)
    if severity:
        try:
            wanted = Severity(severity.upper())
        except ValueError:
            raise InvalidArgumentError("Invalid severity. Must be LOW, CRITICAL, or OUT_OF_STOCK") from None
        alerts = await service.alerts_by_severity(wanted)
    elif category:
        alerts = await service.alerts_by_category(category)
    elif location:
        alerts = await service.alerts_by_location(location)
    else:
        alerts = await service.current_alerts()
    return [a.to_dict() for a in alerts]


@router.get("/alerts/statistics")
async def alert_statistics(db: DbSession, current_user: CurrentUser):
    return await AlertService(db).statistics()


@router.post("/alerts/check")
async def trigger_alert_check(db: DbSession, current_user: CurrentUser, notifier: Notifier):
    """Run the alert scan now and push the results to subscribers."""
    outcome = await run_alert_check(db, notifier)
    alerts = outcome["alerts"]
    return {
        "alerts": [a.to_dict() for a in alerts],
        "statistics": outcome["statistics"],
        "message": f"Generated {len(alerts)} alerts",
    }


@router.get("/monitor")
async def monitor_stock_levels(db: DbSession, current_user: CurrentUser):
    """Low-stock items bucketed into low_stock, critical and out_of_stock."""
    buckets = await AlertService(db).monitor()
    return {
        **buckets,
        "message": (
            f"Found {len(buckets['out_of_stock'])} out of stock, {len(buckets['critical'])} critical, "
            f"and {len(buckets['low_stock'])} low stock items"
        ),
    }


# Bulk operations


@router.post("/bulk/create", status_code=status.HTTP_201_CREATED)
async def bulk_create_items(
    request: BulkCreateRequest, db: DbSession, current_user: CurrentUser, notifier: Notifier, auditor: Auditor
):
    items = await BulkOperationCoordinator(db, notifier).bulk_create(request.items, current_user.id)
    auditor.record(
        current_user, "BULK_CREATE_INVENTORY", RESOURCE_TYPE, None, "POST", 201,
        request_body={"count": len(request.items)}, response_data={"ids": [i["id"] for i in items]},
    )
    return {"items": items, "message": f"Successfully created {len(items)} items"}


@router.post("/bulk/update")
async def bulk_update_items(
    request: BulkUpdateRequest, db: DbSession, current_user: CurrentUser, notifier: Notifier, auditor: Auditor
):
    items = await BulkOperationCoordinator(db, notifier).bulk_update(request.updates, current_user.id)
    auditor.record(
        current_user, "BULK_UPDATE_INVENTORY", RESOURCE_TYPE, None, "POST", 200,
        request_body=request.updates, response_data={"ids": [i["id"] for i in items]},
    )
    return {"items": items, "message": f"Successfully updated {len(items)} items"}


@router.post("/bulk/stock")
async def bulk_update_stock(
    request: BulkStockUpdateRequest, db: DbSession, current_user: CurrentUser, notifier: Notifier, auditor: Auditor
):
    items = await BulkOperationCoordinator(db, notifier).bulk_stock_update(request.updates, current_user.id)
    auditor.record(
        current_user, "BULK_UPDATE_STOCK", RESOURCE_TYPE, None, "POST", 200,
        request_body=request.updates, response_data={"ids": [i["id"] for i in items]},
    )
    return {"items": items, "message": f"Successfully updated stock levels for {len(items)} items"}


@router.delete("/bulk/delete")
async def bulk_delete_items(
    request: BulkDeleteRequest, db: DbSession, current_user: CurrentUser, notifier: Notifier, auditor: Auditor
):
    result = await BulkOperationCoordinator(db, notifier).bulk_delete(request.ids, current_user.id)
    auditor.record(current_user, "BULK_DELETE_INVENTORY", RESOURCE_TYPE, None, "DELETE", 200)
    return {**result, "message": f"Successfully deleted {result['deleted_count']} items"}


# Single items


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_inventory_item(
    item_data: InventoryItemCreate, db: DbSession, current_user: CurrentUser, notifier: Notifier, auditor: Auditor
):
    item = await InventoryService(db, notifier).create_item(item_data, current_user.id)
    response = item_to_response(item)
    auditor.record(
        current_user, "CREATE_INVENTORY_ITEM", RESOURCE_TYPE, item.id, "POST", 201,
        request_body=item_data.model_dump(mode="json"), response_data=response,
    )
    return response


@router.get("/{item_id}")
async def get_inventory_item(item_id: str, db: DbSession, current_user: CurrentUser):
    item = await InventoryService(db).get_item(item_id)
    return item_to_response(item)


@router.put("/{item_id}")
async def update_inventory_item(
    item_id: str,
    item_data: InventoryItemUpdate,
    db: DbSession,
    current_user: CurrentUser,
    notifier: Notifier,
    auditor: Auditor,
):
    item = await InventoryService(db, notifier).update_item(item_id, item_data, current_user.id)
    response = item_to_response(item)
    auditor.record(
        current_user, "UPDATE_INVENTORY_ITEM", RESOURCE_TYPE, item_id, "PUT", 200,
        request_body=item_data.model_dump(mode="json", exclude_unset=True), response_data=response,
    )
    return response


@router.delete("/{item_id}")
async def delete_inventory_item(
    item_id: str, db: DbSession, current_user: CurrentUser, notifier: Notifier, auditor: Auditor
):
    await InventoryService(db, notifier).delete_item(item_id, current_user.id)
    auditor.record(current_user, "DELETE_INVENTORY_ITEM", RESOURCE_TYPE, item_id, "DELETE", 200)
    return {"message": "Inventory item deleted successfully"}


@router.post("/{item_id}/stock")
async def update_stock(
    item_id: str,
    request: StockActionRequest,
    db: DbSession,
    current_user: CurrentUser,
    notifier: Notifier,
    auditor: Auditor,
):
    """Apply a stock movement (add, remove, adjust to a level, or transfer out)."""
    item = await StockLedger(db, notifier).apply_stock_action(
        item_id, request.type, request.quantity, request.notes, current_user.id
    )
    response = item_to_response(item)
    auditor.record(
        current_user, "UPDATE_STOCK", RESOURCE_TYPE, item_id, "POST", 200,
        request_body=request.model_dump(mode="json"), response_data=response,
    )
    return response


@router.post("/{item_id}/adjust")
async def adjust_stock(
    item_id: str,
    request: StockAdjustRequest,
    db: DbSession,
    current_user: CurrentUser,
    notifier: Notifier,
    auditor: Auditor,
):
    """Set the stock level to an absolute value."""
    item = await StockLedger(db, notifier).adjust_stock_level(
        item_id, request.stock_level, request.notes, current_user.id
    )
    response = item_to_response(item)
    auditor.record(
        current_user, "ADJUST_STOCK", RESOURCE_TYPE, item_id, "POST", 200,
        request_body=request.model_dump(mode="json"), response_data=response,
    )
    return response


@router.get("/{item_id}/actions")
async def list_item_actions(
    item_id: str,
    db: DbSession,
    current_user: CurrentUser,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    """Movement history for one item, newest first."""
    return await InventoryService(db).item_actions(item_id, page=page, limit=limit)
