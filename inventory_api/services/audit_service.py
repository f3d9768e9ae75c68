"""
Audit log recording and queries.

Privileged (ADMIN) operations are recorded after their own transaction has
committed, in a separate session, as a background task of the response.
A failing audit write can never undo or delay the operation it describes;
failures are logged and dropped.
"""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any, Optional
import logging

from fastapi import BackgroundTasks
from sqlalchemy import select, func, delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from inventory_api.exceptions import InvalidArgumentError
from inventory_api.models.audit_log import AuditLog
from inventory_api.models.user import User
from inventory_api.services.inventory_service import page_envelope

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 90


def build_changes(
    method: str,
    status_code: int,
    resource_id: str,
    request_body: Any = None,
    response_data: Any = None,
) -> dict:
    """Shape of the ``changes`` payload, which depends on the HTTP verb."""
    method = method.upper()
    if method in ("POST", "PUT", "PATCH"):
        return {
            "method": method,
            "request_body": request_body,
            "response_data": response_data,
            "status_code": status_code,
        }
    if method == "DELETE":
        return {"method": method, "deleted_resource_id": resource_id, "status_code": status_code}
    return {"method": method, "status_code": status_code}


class AuditRecorder:
    """Writes audit rows for admin actors using its own sessions."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def record(
        self,
        actor,
        action: str,
        resource_type: str,
        resource_id: Optional[str],
        method: str,
        status_code: int = 200,
        request_body: Any = None,
        response_data: Any = None,
    ) -> bool:
        """Record one admin operation. Returns False when nothing was written."""
        if actor is None or getattr(actor, "role", None) != "ADMIN":
            return False
        if not 200 <= status_code < 300:
            return False

        resource_id = resource_id or "unknown"
        try:
            async with self.session_factory() as session:
                session.add(
                    AuditLog(
                        action=action,
                        resource_type=resource_type,
                        resource_id=resource_id,
                        changes=build_changes(method, status_code, resource_id, request_body, response_data),
                        user_id=actor.id,
                    )
                )
                await session.commit()
        except Exception as e:
            logger.error("Audit logging failed for %s %s:%s: %s", action, resource_type, resource_id, e)
            return False
        return True


class DeferredAuditor:
    """Queues ``AuditRecorder.record`` calls as response background tasks.

    Same signature as ``AuditRecorder.record``; nothing is written until the
    response has gone out.
    """

    def __init__(self, recorder: AuditRecorder, background_tasks: BackgroundTasks):
        self.recorder = recorder
        self.background_tasks = background_tasks

    def record(self, actor, *args, **kwargs) -> None:
        if actor is None or getattr(actor, "role", None) != "ADMIN":
            return
        # Detach from the ORM instance; the request session is closed by then.
        snapshot = SimpleNamespace(id=actor.id, role=actor.role)
        self.background_tasks.add_task(self.recorder.record, snapshot, *args, **kwargs)


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def _log_to_response(log: AuditLog, user_name: Optional[str], user_email: Optional[str]) -> dict:
    return {
        "id": log.id,
        "action": log.action,
        "resource_type": log.resource_type,
        "resource_id": log.resource_id,
        "changes": log.changes,
        "user_id": log.user_id,
        "user_name": user_name,
        "user_email": user_email,
        "created_at": log.created_at,
    }


class AuditLogService:
    """Read side of the audit log, plus retention pruning."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _page(self, conditions: list, page: int, limit: int) -> dict:
        total = (
            await self.db.execute(select(func.count(AuditLog.id)).where(*conditions))
        ).scalar() or 0
        result = await self.db.execute(
            select(AuditLog, User.name, User.email)
            .outerjoin(User, User.id == AuditLog.user_id)
            .where(*conditions)
            .order_by(AuditLog.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        logs = [_log_to_response(log, name, email) for log, name, email in result.all()]
        return page_envelope(logs, total, page, limit)

    async def find_all(self, page: int = 1, limit: int = 50) -> dict:
        return await self._page([], page, limit)

    async def find_by_user(self, user_id: str, page: int = 1, limit: int = 50) -> dict:
        return await self._page([AuditLog.user_id == user_id], page, limit)

    async def find_by_resource_type(self, resource_type: str, page: int = 1, limit: int = 50) -> dict:
        return await self._page([AuditLog.resource_type == resource_type], page, limit)

    async def find_by_resource_id(self, resource_id: str, page: int = 1, limit: int = 50) -> dict:
        return await self._page([AuditLog.resource_id == resource_id], page, limit)

    async def find_by_date_range(self, start: datetime, end: datetime, page: int = 1, limit: int = 50) -> dict:
        start, end = _as_utc(start), _as_utc(end)
        if start > end:
            raise InvalidArgumentError("Start date must be before end date")
        return await self._page([AuditLog.created_at >= start, AuditLog.created_at <= end], page, limit)

    async def delete_older_than(self, days: int = DEFAULT_RETENTION_DAYS) -> int:
        """Delete entries older than ``days`` days and return how many went."""
        if days < 1:
            raise InvalidArgumentError("Days must be a positive integer")
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        result = await self.db.execute(delete(AuditLog).where(AuditLog.created_at < cutoff))
        await self.db.commit()
        deleted = result.rowcount or 0
        logger.info("Pruned %d audit log entries older than %d days", deleted, days)
        return deleted
