"""Audit log API (admin only)."""

from fastapi import APIRouter, Query
from datetime import datetime

from inventory_api.api.deps import DbSession, AdminUser, Auditor
from inventory_api.schemas.audit import AuditLogListResponse, AuditCleanupResponse
from inventory_api.services.audit_service import AuditLogService, DEFAULT_RETENTION_DAYS

router = APIRouter()

Page = Query(1, ge=1)
Limit = Query(50, ge=1, le=200)


@router.get("", response_model=AuditLogListResponse)
async def list_audit_logs(db: DbSession, admin: AdminUser, page: int = Page, limit: int = Limit):
    return await AuditLogService(db).find_all(page, limit)


@router.get("/user/{user_id}", response_model=AuditLogListResponse)
async def audit_logs_for_user(user_id: str, db: DbSession, admin: AdminUser, page: int = Page, limit: int = Limit):
    return await AuditLogService(db).find_by_user(user_id, page, limit)


@router.get("/resource-type/{resource_type}", response_model=AuditLogListResponse)
async def audit_logs_for_resource_type(
    resource_type: str, db: DbSession, admin: AdminUser, page: int = Page, limit: int = Limit
):
    return await AuditLogService(db).find_by_resource_type(resource_type, page, limit)


@router.get("/resource/{resource_id}", response_model=AuditLogListResponse)
async def audit_logs_for_resource(
    resource_id: str, db: DbSession, admin: AdminUser, page: int = Page, limit: int = Limit
):
    return await AuditLogService(db).find_by_resource_id(resource_id, page, limit)


@router.get("/date-range", response_model=AuditLogListResponse)
async def audit_logs_in_range(
    db: DbSession,
    admin: AdminUser,
    start_date: datetime,
    end_date: datetime,
    page: int = Page,
    limit: int = Limit,
):
    return await AuditLogService(db).find_by_date_range(start_date, end_date, page, limit)


@router.delete("/cleanup", response_model=AuditCleanupResponse)
async def cleanup_audit_logs(
    db: DbSession,
    admin: AdminUser,
    auditor: Auditor,
    days: int = Query(DEFAULT_RETENTION_DAYS),
):
    """Delete entries older than ``days`` days."""
    deleted = await AuditLogService(db).delete_older_than(days)
    auditor.record(
        admin, "CLEANUP_AUDIT_LOGS", "System", "audit_logs", "DELETE", 200,
    )
    return AuditCleanupResponse(deleted_count=deleted, days=days)
