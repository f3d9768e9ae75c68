"""
WebSocket Connection Manager

Manages WebSocket connections for real-time inventory updates.
Supports:
- Named rooms (``inventory:updates``, ``alerts:updates``) clients opt into
- Implicit per-user (``user:<id>``) and per-role (``role:<ROLE>``) rooms
- Broadcasting to every connected client
- Connection heartbeat tracking

``InventoryNotifier`` is the publishing side used by services. Publishing is
best-effort: a failed send is logged and never reaches the caller.
"""

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder
from typing import Any, Dict, Optional, Set
from datetime import datetime, timezone
import logging
import asyncio

logger = logging.getLogger(__name__)

INVENTORY_ROOM = "inventory:updates"
ALERTS_ROOM = "alerts:updates"
SUBSCRIBABLE_ROOMS = {INVENTORY_ROOM, ALERTS_ROOM}

# Event names
INVENTORY_UPDATE = "inventory:update"
ALERTS_NEW = "alerts:new"
ALERTS_UPDATE = "alerts:update"
NOTIFICATION = "notification"
SYSTEM_NOTIFICATION = "system:notification"


def user_room(user_id: str) -> str:
    return f"user:{user_id}"


def role_room(role: str) -> str:
    return f"role:{role}"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ConnectionManager:
    """
    Tracks WebSocket connections, the user behind each, and room membership.

    A user may hold several connections (tabs/devices); each connection has
    its own room set.
    """

    def __init__(self):
        self._connections: Dict[str, Set[WebSocket]] = {}
        self._websocket_to_user: Dict[WebSocket, str] = {}
        self._user_roles: Dict[str, str] = {}
        self._rooms: Dict[str, Set[WebSocket]] = {}
        self._heartbeats: Dict[WebSocket, datetime] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, user_id: str, user_role: Optional[str] = None) -> None:
        """Accept a connection, register it and join its user/role rooms."""
        await websocket.accept()

        async with self._lock:
            self._connections.setdefault(user_id, set()).add(websocket)
            self._websocket_to_user[websocket] = user_id
            self._heartbeats[websocket] = datetime.now(timezone.utc)
            if user_role:
                self._user_roles[user_id] = user_role

        self.join(websocket, user_room(user_id))
        if user_role:
            self.join(websocket, role_room(user_role))

        logger.info("WebSocket connected: user_id=%s, total_connections=%d", user_id, self.total_connections)

    def disconnect(self, websocket: WebSocket, user_id: str) -> None:
        """Forget a connection and drop it from every room."""
        if user_id in self._connections:
            self._connections[user_id].discard(websocket)
            if not self._connections[user_id]:
                del self._connections[user_id]
                self._user_roles.pop(user_id, None)

        for room in list(self._rooms):
            members = self._rooms[room]
            members.discard(websocket)
            if not members:
                del self._rooms[room]

        self._websocket_to_user.pop(websocket, None)
        self._heartbeats.pop(websocket, None)

        logger.info("WebSocket disconnected: user_id=%s, total_connections=%d", user_id, self.total_connections)

    def join(self, websocket: WebSocket, room: str) -> None:
        self._rooms.setdefault(room, set()).add(websocket)

    def leave(self, websocket: WebSocket, room: str) -> None:
        members = self._rooms.get(room)
        if members is None:
            return
        members.discard(websocket)
        if not members:
            del self._rooms[room]

    def rooms_of(self, websocket: WebSocket) -> Set[str]:
        return {room for room, members in self._rooms.items() if websocket in members}

    def update_heartbeat(self, websocket: WebSocket) -> None:
        self._heartbeats[websocket] = datetime.now(timezone.utc)

    @property
    def total_connections(self) -> int:
        return len(self._websocket_to_user)

    @property
    def connected_users(self) -> Set[str]:
        return set(self._connections.keys())

    def is_user_connected(self, user_id: str) -> bool:
        return user_id in self._connections

    def users_with_role(self, role: str) -> Set[str]:
        return {
            user_id for user_id, user_role in self._user_roles.items()
            if user_role == role and user_id in self._connections
        }

    async def _send(self, websockets, message: dict) -> int:
        """Send to each socket; sockets that fail are disconnected."""
        sent_count = 0
        dead = []
        for websocket in list(websockets):
            try:
                await websocket.send_json(message)
                sent_count += 1
            except Exception as e:
                logger.warning("Failed to send WebSocket message: %s", e)
                dead.append(websocket)

        for websocket in dead:
            user_id = self._websocket_to_user.get(websocket)
            if user_id is not None:
                self.disconnect(websocket, user_id)
        return sent_count

    async def emit_to_room(self, room: str, event_type: str, data: dict) -> int:
        """Send a typed event to every member of ``room``."""
        members = self._rooms.get(room)
        if not members:
            return 0
        return await self._send(members, self._message(event_type, data))

    async def broadcast_event(self, event_type: str, data: dict) -> int:
        """Send a typed event to every connected client."""
        sent_count = await self._send(list(self._websocket_to_user), self._message(event_type, data))
        logger.debug("Broadcast %s sent to %d connections", event_type, sent_count)
        return sent_count

    @staticmethod
    def _message(event_type: str, data: dict) -> dict:
        payload = jsonable_encoder(data)
        payload.setdefault("timestamp", _now_iso())
        return {"type": event_type, "data": payload}

    async def check_stale_connections(self, timeout_seconds: int = 120) -> int:
        """Close connections whose last heartbeat is older than ``timeout_seconds``."""
        now = datetime.now(timezone.utc)
        async with self._lock:
            stale = [
                (websocket, self._websocket_to_user.get(websocket))
                for websocket, last_heartbeat in self._heartbeats.items()
                if (now - last_heartbeat).total_seconds() > timeout_seconds
            ]

        for websocket, user_id in stale:
            if user_id is None:
                continue
            try:
                await websocket.close(code=4002, reason="Connection timeout")
            except Exception as e:
                logger.debug("Closing stale WebSocket failed: %s", e)
            self.disconnect(websocket, user_id)

        if stale:
            logger.info("Cleaned up %d stale WebSocket connections", len(stale))
        return len(stale)

    def get_connection_stats(self) -> dict:
        return {
            "total_connections": self.total_connections,
            "total_connected_users": len(self._connections),
            "admin_users": len(self.users_with_role("ADMIN")),
            "regular_users": len(self.users_with_role("USER")),
        }


class InventoryNotifier:
    """Publishes domain events to WebSocket rooms. Never raises."""

    def __init__(self, connections: ConnectionManager):
        self.connections = connections

    async def publish(self, event: str, payload: Dict[str, Any], room: Optional[str] = None) -> int:
        """Route ``event`` to its room (or every client) and swallow failures."""
        try:
            if room is None:
                room = _default_room(event)
            if room is None:
                return await self.connections.broadcast_event(event, payload)
            return await self.connections.emit_to_room(room, event, payload)
        except Exception as e:
            logger.warning("Notification %s dropped: %s", event, e)
            return 0

    async def inventory_updated(
        self,
        update_type: str,
        item: Any,
        user_id: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> int:
        payload = {"type": update_type, "item": item}
        if user_id is not None:
            payload["user_id"] = user_id
        if details is not None:
            payload["details"] = details
        return await self.publish(INVENTORY_UPDATE, payload)

    async def alert_raised(self, alert: dict) -> int:
        return await self.publish(ALERTS_NEW, dict(alert))

    async def alerts_updated(self, alerts: list) -> int:
        return await self.publish(ALERTS_UPDATE, {"alerts": alerts})

    async def notify_user(self, user_id: str, notification: dict) -> int:
        return await self.publish(NOTIFICATION, notification, room=user_room(user_id))

    async def notify_role(self, role: str, notification: dict) -> int:
        return await self.publish(NOTIFICATION, notification, room=role_room(role))

    async def system_notification(self, notification: dict) -> int:
        return await self.publish(SYSTEM_NOTIFICATION, notification)


def _default_room(event: str) -> Optional[str]:
    if event == INVENTORY_UPDATE:
        return INVENTORY_ROOM
    if event in (ALERTS_NEW, ALERTS_UPDATE):
        return ALERTS_ROOM
    return None


# Global manager instance
manager = ConnectionManager()
