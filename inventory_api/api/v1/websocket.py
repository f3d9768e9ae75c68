"""
WebSocket Endpoint

Connection URL: ws://host/api/v1/ws?token=<jwt_token>

Client -> Server:
    {"type": "ping"}
    {"type": "subscribe", "rooms": ["inventory:updates", "alerts:updates"]}
    {"type": "unsubscribe", "rooms": ["alerts:updates"]}
    {"type": "check_alerts"}

Server -> Client:
    {"type": "connected", "user_id": "...", "timestamp": "..."}
    {"type": "pong", "timestamp": "..."}
    {"type": "subscribed" | "unsubscribed", "rooms": [...]}
    {"type": "inventory:update" | "alerts:new" | "alerts:update" | ..., "data": {...}}
    {"type": "error", "message": "..."}

Every connection is placed in its ``user:<id>`` and ``role:<ROLE>`` rooms on
connect; the inventory and alert rooms are opt-in.
"""

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Query
from datetime import datetime, timezone
from typing import Optional
import logging
import json

from inventory_api.api.deps import get_user_from_token
from inventory_api.database import async_session_maker
from inventory_api.services.alert_service import AlertService
from inventory_api.services.websocket_manager import ALERTS_UPDATE, SUBSCRIBABLE_ROOMS, manager

logger = logging.getLogger(__name__)

router = APIRouter()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _requested_rooms(data: dict) -> Optional[list]:
    rooms = data.get("rooms")
    if not isinstance(rooms, list):
        return None
    return [r for r in rooms if r in SUBSCRIBABLE_ROOMS]


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    token: Optional[str] = Query(None, description="JWT access token"),
):
    """WebSocket endpoint for inventory updates and low-stock alerts."""
    async with async_session_maker() as db:
        user = await get_user_from_token(db, token)

    if not user:
        logger.warning("WebSocket connection rejected: invalid token")
        await websocket.close(code=4001, reason="Unauthorized")
        return

    await manager.connect(websocket, user.id, user.role)

    try:
        await websocket.send_json({"type": "connected", "user_id": user.id, "timestamp": _now()})

        while True:
            try:
                data = await websocket.receive_json()
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "message": "Invalid JSON format"})
                continue
            if not isinstance(data, dict):
                await websocket.send_json({"type": "error", "message": "Message must be an object"})
                continue

            message_type = data.get("type")

            if message_type == "ping":
                manager.update_heartbeat(websocket)
                await websocket.send_json({"type": "pong", "timestamp": _now()})

            elif message_type == "subscribe":
                rooms = _requested_rooms(data)
                if rooms is None:
                    await websocket.send_json({"type": "error", "message": "rooms must be a list"})
                    continue
                for room in rooms:
                    manager.join(websocket, room)
                await websocket.send_json({"type": "subscribed", "rooms": rooms})

            elif message_type == "unsubscribe":
                rooms = _requested_rooms(data)
                if rooms is None:
                    await websocket.send_json({"type": "error", "message": "rooms must be a list"})
                    continue
                for room in rooms:
                    manager.leave(websocket, room)
                await websocket.send_json({"type": "unsubscribed", "rooms": rooms})

            elif message_type == "check_alerts":
                async with async_session_maker() as db:
                    alerts = await AlertService(db).current_alerts()
                await websocket.send_json(
                    {
                        "type": ALERTS_UPDATE,
                        "data": {"alerts": [a.to_dict() for a in alerts], "timestamp": _now()},
                    }
                )

            else:
                await websocket.send_json({"type": "error", "message": f"Unknown message type: {message_type}"})

    except WebSocketDisconnect:
        logger.info("WebSocket disconnected: user_id=%s", user.id)
    except Exception as e:
        logger.error("WebSocket error for user %s: %s", user.id, e)
    finally:
        manager.disconnect(websocket, user.id)
