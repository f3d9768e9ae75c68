"""Admin dashboard."""

from fastapi import APIRouter
from sqlalchemy import select, func
from datetime import datetime, timedelta, timezone

from inventory_api.api.deps import DbSession, AdminUser, Auditor
from inventory_api.models.inventory import InventoryItem
from inventory_api.models.user import User
from inventory_api.services.reporting_service import ReportingService

router = APIRouter()


@router.get("/dashboard")
async def admin_dashboard(db: DbSession, admin: AdminUser, auditor: Auditor):
    """User counts, catalogue size and stock movements over the last 24 hours."""
    total_users = (await db.execute(select(func.count(User.id)))).scalar() or 0
    active_users = (
        await db.execute(select(func.count(User.id)).where(User.is_active == True))  # noqa: E712
    ).scalar() or 0
    total_items = (await db.execute(select(func.count(InventoryItem.id)))).scalar() or 0
    since = datetime.now(timezone.utc) - timedelta(hours=24)
    recent_actions = await ReportingService(db).activity_counts(since)

    auditor.record(admin, "VIEW_ADMIN_DASHBOARD", "System", "dashboard", "GET", 200)
    return {
        "users": {
            "total": total_users,
            "active": active_users,
            "inactive": total_users - active_users,
        },
        "inventory": {"total_items": total_items},
        "activity": {"recent_actions": recent_actions},
    }
