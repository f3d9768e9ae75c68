"""
Tests for the low-stock alert engine.
"""
import pytest
from datetime import datetime, timezone
from types import SimpleNamespace

from inventory_api.services.alert_service import (
    AlertService,
    Severity,
    build_alert,
    classify_severity,
    run_alert_check,
)
from inventory_api.services.websocket_manager import ALERTS_NEW, ALERTS_UPDATE


class TestClassifySeverity:
    """Severity is a pure function of stock_level and min_stock."""

    @pytest.mark.parametrize(
        "stock_level,min_stock,expected",
        [
            (0, 20, Severity.OUT_OF_STOCK),
            (0, 0, Severity.OUT_OF_STOCK),
            (5, 20, Severity.CRITICAL),
            (1, 20, Severity.CRITICAL),
            (6, 20, Severity.LOW),
            (15, 20, Severity.LOW),
            (20, 20, Severity.LOW),
            (25, 20, None),
            (1, 0, None),
        ],
    )
    def test_classification(self, stock_level, min_stock, expected):
        assert classify_severity(stock_level, min_stock) == expected

    def test_quarter_boundary_is_exact(self):
        """With min_stock 10 the quarter is 2.5: 2 is critical, 3 is low."""
        assert classify_severity(2, 10) == Severity.CRITICAL
        assert classify_severity(3, 10) == Severity.LOW

    def test_min_stock_one(self):
        assert classify_severity(1, 1) == Severity.LOW
        assert classify_severity(0, 1) == Severity.OUT_OF_STOCK


class TestBuildAlert:
    def _item(self, **overrides):
        data = dict(
            id="abc", name="Widget", sku="WID-1", stock_level=5, min_stock=20,
            location="Aisle 1", category="Hardware",
        )
        data.update(overrides)
        return SimpleNamespace(**data)

    def test_alert_fields(self):
        now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        alert = build_alert(self._item(), now)

        assert alert.id == f"alert_abc_{int(now.timestamp() * 1000)}"
        assert alert.severity == Severity.CRITICAL
        assert alert.current_stock == 5
        data = alert.to_dict()
        assert data["severity"] == "CRITICAL"
        assert data["created_at"].startswith("2026-03-01T12:00:00")

    def test_no_alert_above_threshold(self):
        assert build_alert(self._item(stock_level=50)) is None


class TestAlertService:
    async def test_current_alerts_ordered_by_stock(self, test_db, make_item):
        await make_item(name="Healthy", stock_level=100, min_stock=20)
        await make_item(name="Low", stock_level=15, min_stock=20)
        await make_item(name="Empty", stock_level=0, min_stock=20)
        await make_item(name="Critical", stock_level=4, min_stock=20)

        alerts = await AlertService(test_db).current_alerts()

        assert [a.item_name for a in alerts] == ["Empty", "Critical", "Low"]
        assert [a.severity for a in alerts] == [Severity.OUT_OF_STOCK, Severity.CRITICAL, Severity.LOW]

    async def test_filters(self, test_db, make_item):
        await make_item(name="Bolt", stock_level=1, min_stock=20, category="Hardware", location="Aisle 1")
        await make_item(name="Tape", stock_level=10, min_stock=20, category="Packaging", location="Dock B")
        service = AlertService(test_db)

        assert [a.item_name for a in await service.alerts_by_severity(Severity.LOW)] == ["Tape"]
        assert [a.item_name for a in await service.alerts_by_category("hard")] == ["Bolt"]
        assert [a.item_name for a in await service.alerts_by_location("DOCK")] == ["Tape"]

    async def test_statistics_has_all_severity_keys(self, test_db, make_item):
        await make_item(stock_level=10, min_stock=20, category="Hardware", location="Aisle 1")
        await make_item(stock_level=12, min_stock=20, category="Hardware", location="Aisle 2")

        stats = await AlertService(test_db).statistics()

        assert stats["total"] == 2
        assert stats["by_severity"] == {"LOW": 2, "CRITICAL": 0, "OUT_OF_STOCK": 0}
        assert stats["by_category"] == {"Hardware": 2}
        assert stats["by_location"] == {"Aisle 1": 1, "Aisle 2": 1}

    async def test_statistics_empty(self, test_db):
        stats = await AlertService(test_db).statistics()
        assert stats["total"] == 0
        assert set(stats["by_severity"]) == {"LOW", "CRITICAL", "OUT_OF_STOCK"}

    async def test_monitor_buckets(self, test_db, make_item):
        await make_item(sku="OUT-1", stock_level=0, min_stock=10)
        await make_item(sku="CRIT-1", stock_level=2, min_stock=10)
        await make_item(sku="LOW-1", stock_level=8, min_stock=10)
        await make_item(sku="OK-1", stock_level=80, min_stock=10)

        buckets = await AlertService(test_db).monitor()

        assert [i["sku"] for i in buckets["out_of_stock"]] == ["OUT-1"]
        assert [i["sku"] for i in buckets["critical"]] == ["CRIT-1"]
        assert [i["sku"] for i in buckets["low_stock"]] == ["LOW-1"]

    async def test_should_trigger_alert(self, test_db, make_item):
        low = await make_item(stock_level=5, min_stock=10)
        ok = await make_item(stock_level=50, min_stock=10)
        service = AlertService(test_db)

        assert await service.should_trigger_alert(low.id) is True
        assert await service.should_trigger_alert(ok.id) is False
        assert await service.should_trigger_alert("missing") is False


class TestRunAlertCheck:
    async def test_broadcasts_update_and_urgent_alerts(self, test_db, make_item, notifier):
        await make_item(name="Empty", stock_level=0, min_stock=10)
        await make_item(name="Low", stock_level=8, min_stock=10)

        outcome = await run_alert_check(test_db, notifier)

        assert outcome["statistics"]["total"] == 2
        updates = notifier.of_type(ALERTS_UPDATE)
        assert len(updates) == 1
        assert len(updates[0]["alerts"]) == 2
        urgent = notifier.of_type(ALERTS_NEW)
        assert [a["item_name"] for a in urgent] == ["Empty"]

    async def test_nothing_published_without_alerts(self, test_db, make_item, notifier):
        await make_item(stock_level=100, min_stock=10)

        outcome = await run_alert_check(test_db, notifier)

        assert outcome["alerts"] == []
        assert notifier.events == []
