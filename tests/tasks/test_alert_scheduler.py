"""
Tests for the stock monitoring scheduler jobs.
"""
from datetime import datetime, timedelta, timezone

from sqlalchemy import select

from inventory_api.models.audit_log import AuditLog
from inventory_api.services.websocket_manager import ALERTS_UPDATE
from inventory_api.tasks import alert_scheduler
from inventory_api.tasks.alert_scheduler import (
    check_stock_levels,
    get_scheduler,
    prune_audit_logs,
    scheduler_status,
)


class TestSchedulerSetup:
    def test_get_scheduler_singleton(self):
        assert get_scheduler() is get_scheduler()

    def test_status_when_not_started(self, monkeypatch):
        monkeypatch.setattr(alert_scheduler, "scheduler", None)
        assert scheduler_status() == {"is_running": False, "jobs": []}


class TestCheckStockLevels:
    async def test_broadcasts_current_alerts(self, session_factory, make_item, notifier):
        await make_item(stock_level=0, min_stock=10)
        await make_item(stock_level=50, min_stock=10)

        result = await check_stock_levels(session_factory, notifier)

        assert result["status"] == "completed"
        assert result["statistics"]["by_severity"]["OUT_OF_STOCK"] == 1
        assert len(notifier.of_type(ALERTS_UPDATE)) == 1

    async def test_failure_is_reported_not_raised(self, notifier):
        def broken_factory():
            raise RuntimeError("database down")

        result = await check_stock_levels(broken_factory, notifier)

        assert result == {"status": "failed", "error": "database down"}


class TestPruneAuditLogs:
    async def test_removes_entries_past_retention(self, session_factory, test_db, admin_user):
        now = datetime.now(timezone.utc)
        test_db.add_all([
            AuditLog(action="OLD", resource_type="System", resource_id="x", user_id=admin_user.id,
                     created_at=now - timedelta(days=100)),
            AuditLog(action="NEW", resource_type="System", resource_id="y", user_id=admin_user.id,
                     created_at=now - timedelta(days=1)),
        ])
        await test_db.commit()

        assert await prune_audit_logs(session_factory, days=90) == 1
        remaining = (await test_db.execute(select(AuditLog.action))).scalars().all()
        assert remaining == ["NEW"]
