"""Realtime status and manual test broadcasts."""

from fastapi import APIRouter
from pydantic import BaseModel
from typing import Optional

from inventory_api.api.deps import CurrentUser, Notifier
from inventory_api.exceptions import InvalidArgumentError
from inventory_api.services.websocket_manager import manager

router = APIRouter()


class TestBroadcastRequest(BaseModel):
    type: str
    message: Optional[str] = None


@router.get("/status")
async def realtime_status(current_user: CurrentUser):
    """WebSocket connection counts."""
    stats = manager.get_connection_stats()
    return {**stats, "is_user_connected": manager.is_user_connected(current_user.id)}


@router.post("/test-broadcast")
async def test_broadcast(request: TestBroadcastRequest, current_user: CurrentUser, notifier: Notifier):
    """Send a sample notification, inventory update or alert to connected clients."""
    if request.type == "notification":
        sent = await notifier.system_notification(
            {"type": "info", "title": "Test Notification", "message": request.message or "This is a test notification"}
        )
    elif request.type == "inventory":
        sent = await notifier.inventory_updated(
            "updated",
            {"id": "test-item", "name": "Test Item", "sku": "TEST-001", "stock_level": 100},
            user_id=current_user.id,
        )
    elif request.type == "alert":
        sent = await notifier.alert_raised(
            {
                "id": "test-alert",
                "item_name": "Test Item",
                "sku": "TEST-001",
                "current_stock": 5,
                "min_stock": 10,
                "severity": "LOW",
                "message": request.message or "This is a test alert",
            }
        )
    else:
        raise InvalidArgumentError("Invalid broadcast type. Use: notification, inventory, or alert")

    return {"message": f"Test {request.type} broadcast sent", "recipients": sent}
