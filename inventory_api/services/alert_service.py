"""
Low-stock alert engine.

Alerts are derived, never stored: every call re-reads the items that are at
or below their reorder threshold and classifies them. The threshold
comparison runs in SQL; severity is a pure function of two integers.
"""

from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
import logging
import time

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_api.models.inventory import InventoryItem
from inventory_api.schemas.inventory import item_to_response

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    LOW = "LOW"
    CRITICAL = "CRITICAL"
    OUT_OF_STOCK = "OUT_OF_STOCK"


def classify_severity(stock_level: int, min_stock: int) -> Optional[Severity]:
    """Severity for an item, or None when it is above its threshold.

    Empty stock is always OUT_OF_STOCK. Otherwise an item at or below a
    quarter of ``min_stock`` is CRITICAL and anything else under the
    threshold is LOW. Integer arithmetic keeps the quarter boundary exact.
    """
    if stock_level > min_stock:
        return None
    if stock_level == 0:
        return Severity.OUT_OF_STOCK
    if 4 * stock_level <= min_stock:
        return Severity.CRITICAL
    return Severity.LOW


@dataclass
class Alert:
    id: str
    item_id: str
    item_name: str
    sku: str
    current_stock: int
    min_stock: int
    location: str
    category: str
    severity: Severity
    created_at: datetime

    def to_dict(self) -> dict:
        data = asdict(self)
        data["severity"] = self.severity.value
        data["created_at"] = self.created_at.isoformat()
        return data


def build_alert(item: InventoryItem, now: Optional[datetime] = None) -> Optional[Alert]:
    """Alert for ``item`` if it is at or below its threshold."""
    severity = classify_severity(item.stock_level, item.min_stock)
    if severity is None:
        return None
    now = now or datetime.now(timezone.utc)
    epoch_ms = int(now.timestamp() * 1000)
    return Alert(
        id=f"alert_{item.id}_{epoch_ms}",
        item_id=str(item.id),
        item_name=item.name,
        sku=item.sku,
        current_stock=item.stock_level,
        min_stock=item.min_stock,
        location=item.location,
        category=item.category,
        severity=severity,
        created_at=now,
    )


class AlertService:
    """Reads low-stock items through an injected session and classifies them."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def low_stock_items(self) -> list[InventoryItem]:
        """Items with ``stock_level <= min_stock``, emptiest first."""
        result = await self.db.execute(
            select(InventoryItem)
            .where(InventoryItem.stock_level <= InventoryItem.min_stock)
            .order_by(InventoryItem.stock_level.asc(), InventoryItem.name.asc())
        )
        return list(result.scalars().all())

    async def current_alerts(self) -> list[Alert]:
        now = datetime.now(timezone.utc)
        alerts = []
        for item in await self.low_stock_items():
            alert = build_alert(item, now)
            if alert is not None:
                alerts.append(alert)
        return alerts

    async def alerts_by_severity(self, severity: Severity) -> list[Alert]:
        return [a for a in await self.current_alerts() if a.severity == severity]

    async def alerts_by_category(self, category: str) -> list[Alert]:
        needle = category.lower()
        return [a for a in await self.current_alerts() if needle in a.category.lower()]

    async def alerts_by_location(self, location: str) -> list[Alert]:
        needle = location.lower()
        return [a for a in await self.current_alerts() if needle in a.location.lower()]

    async def statistics(self, alerts: Optional[list[Alert]] = None) -> dict:
        """Counts of current alerts by severity, category and location."""
        if alerts is None:
            alerts = await self.current_alerts()

        by_severity = {s.value: 0 for s in Severity}
        by_category: dict[str, int] = {}
        by_location: dict[str, int] = {}
        for alert in alerts:
            by_severity[alert.severity.value] += 1
            by_category[alert.category] = by_category.get(alert.category, 0) + 1
            by_location[alert.location] = by_location.get(alert.location, 0) + 1

        return {
            "total": len(alerts),
            "by_severity": by_severity,
            "by_category": by_category,
            "by_location": by_location,
        }

    async def monitor(self) -> dict:
        """Low-stock items bucketed by severity, as item snapshots."""
        buckets = {"low_stock": [], "critical": [], "out_of_stock": []}
        for item in await self.low_stock_items():
            severity = classify_severity(item.stock_level, item.min_stock)
            if severity == Severity.OUT_OF_STOCK:
                buckets["out_of_stock"].append(item_to_response(item))
            elif severity == Severity.CRITICAL:
                buckets["critical"].append(item_to_response(item))
            elif severity == Severity.LOW:
                buckets["low_stock"].append(item_to_response(item))
        return buckets

    async def should_trigger_alert(self, item_id: str) -> bool:
        """True when the item exists and is at or below its threshold."""
        item = await self.db.get(InventoryItem, item_id)
        if item is None:
            return False
        return item.stock_level <= item.min_stock


async def run_alert_check(db: AsyncSession, notifier) -> dict:
    """Scan alerts and push them to subscribers.

    Used by both the periodic job and the manual check endpoint. Every
    current alert goes out as one ``alerts:update``; CRITICAL and
    OUT_OF_STOCK alerts are also sent individually as ``alerts:new``.
    """
    started = time.monotonic()
    service = AlertService(db)
    alerts = await service.current_alerts()
    statistics = await service.statistics(alerts)

    if alerts:
        await notifier.alerts_updated([a.to_dict() for a in alerts])
        for alert in alerts:
            if alert.severity in (Severity.CRITICAL, Severity.OUT_OF_STOCK):
                await notifier.alert_raised(alert.to_dict())

    by_severity = statistics["by_severity"]
    logger.info(
        "Alert check: %d out of stock, %d critical, %d low (%.0fms)",
        by_severity["OUT_OF_STOCK"], by_severity["CRITICAL"], by_severity["LOW"],
        (time.monotonic() - started) * 1000,
    )
    return {"alerts": alerts, "statistics": statistics}
