"""
Reporting and metrics.

The aggregation helpers at module level are pure (they take model rows and
return plain data) so that money and movement arithmetic can be checked
without a database. ``ReportingService`` fetches rows through the injected
session and assembles the three report shapes.

Money stays ``Decimal`` until the response edge, where ``money_out``
quantizes it to cents.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Iterable, Optional
import random

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_api.models.inventory import InventoryItem
from inventory_api.models.inventory_action import ActionType, InventoryAction
from inventory_api.models.user import User
from inventory_api.schemas.report import ReportFilter
from inventory_api.schemas.types import money_out, quantize_money

TREND_DAYS = 30
RECENT_ACTIONS_LIMIT = 100
TOP_N = 10
STOCK_ACCURACY = 95.0
VALUE_JITTER = 0.05


def as_utc(value: datetime) -> datetime:
    """Timestamps read back from SQLite are naive; they are stored as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def day_key(value: datetime) -> str:
    return as_utc(value).date().isoformat()


def item_value(item) -> Decimal:
    """Stock on hand times unit price, exact."""
    price = item.unit_price
    if not isinstance(price, Decimal):
        price = Decimal(str(price or 0))
    return Decimal(item.stock_level or 0) * price


def total_value(items: Iterable) -> Decimal:
    return sum((item_value(i) for i in items), Decimal("0"))


def item_status(stock_level: int, min_stock: int) -> str:
    if stock_level == 0:
        return "out_of_stock"
    if stock_level <= min_stock:
        return "low_stock"
    return "normal"


def movement_delta(action_type: str, quantity: int) -> int:
    """Signed effect of an action on stock for movement statistics.

    ADJUST_STOCK quantities are unsigned distances, so they count as inbound.
    """
    if action_type in (ActionType.REMOVE_STOCK.value, ActionType.TRANSFER.value):
        return -quantity
    return quantity


def top_groups(items: Iterable, key: str, limit: int = TOP_N) -> list[dict]:
    """Group items by ``key`` and rank groups by summed per-item value."""
    groups: dict[str, dict] = {}
    for item in items:
        name = getattr(item, key)
        group = groups.setdefault(name, {key: name, "item_count": 0, "total_value": Decimal("0")})
        group["item_count"] += 1
        group["total_value"] += item_value(item)

    ranked = sorted(groups.values(), key=lambda g: (-g["total_value"], g[key]))[:limit]
    return [{**g, "total_value": money_out(g["total_value"])} for g in ranked]


def action_trends(actions: Iterable) -> list[dict]:
    """Per-day action counts with a per-type breakdown, oldest day first."""
    days: dict[str, dict] = {}
    for action in actions:
        day = days.setdefault(
            day_key(action.created_at),
            {"action_count": 0, "actions_by_type": {t.value: 0 for t in ActionType}},
        )
        day["action_count"] += 1
        day["actions_by_type"][action.type] = day["actions_by_type"].get(action.type, 0) + 1
    return [{"date": d, **days[d]} for d in sorted(days)]


def stock_trends(actions: Iterable) -> list[dict]:
    """Per-day inbound, outbound and net stock, oldest day first."""
    days: dict[str, dict] = {}
    for action in actions:
        day = days.setdefault(day_key(action.created_at), {"total_stock": 0, "stock_in": 0, "stock_out": 0})
        delta = movement_delta(action.type, action.quantity)
        if delta >= 0:
            day["stock_in"] += delta
        else:
            day["stock_out"] -= delta
        day["total_stock"] += delta
    return [{"date": d, **days[d]} for d in sorted(days)]


def stock_movements(actions: Iterable) -> list[dict]:
    return [
        {"date": t["date"], "stock_in": t["stock_in"], "stock_out": t["stock_out"], "net_change": t["total_stock"]}
        for t in stock_trends(actions)
    ]


def top_moving_items(rows: Iterable, limit: int = TOP_N) -> list[dict]:
    """Rank items by number of movements. ``rows`` are ``(action, name, sku)``."""
    movers: dict[str, dict] = {}
    for action, name, sku in rows:
        mover = movers.setdefault(
            action.item_id,
            {"id": action.item_id, "name": name, "sku": sku, "total_movements": 0, "net_movement": 0},
        )
        mover["total_movements"] += 1
        mover["net_movement"] += movement_delta(action.type, action.quantity)
    return sorted(movers.values(), key=lambda m: -m["total_movements"])[:limit]


def simulated_value_changes(current_total: Decimal, today: date, rng: Optional[random.Random] = None,
                            days: int = TREND_DAYS) -> list[dict]:
    """Synthetic daily value series jittered around the current total.

    No valuation history is stored, so each day is the current total moved
    by up to +/-5%.
    """
    rng = rng or random.Random()
    series = []
    previous = None
    for offset in range(days - 1, -1, -1):
        variation = Decimal(str(rng.uniform(-VALUE_JITTER, VALUE_JITTER)))
        value = quantize_money(current_total * (1 + variation))
        change = value - previous if previous is not None else Decimal("0")
        series.append({
            "date": (today - timedelta(days=offset)).isoformat(),
            "total_value": money_out(value),
            "value_change": money_out(change),
        })
        previous = value
    return series


class ReportingService:
    def __init__(self, db: AsyncSession, rng: Optional[random.Random] = None):
        self.db = db
        self.rng = rng

    def _item_query(self, report_filter: ReportFilter, include_item_id: bool = True):
        query = select(InventoryItem)
        if report_filter.category:
            query = query.where(InventoryItem.category.icontains(report_filter.category, autoescape=True))
        if report_filter.location:
            query = query.where(InventoryItem.location.icontains(report_filter.location, autoescape=True))
        if include_item_id and report_filter.item_id:
            query = query.where(InventoryItem.id == report_filter.item_id)
        return query

    def _action_conditions(self, report_filter: ReportFilter, since: Optional[datetime] = None,
                           include_item_id: bool = True) -> list:
        conditions = []
        start = report_filter.start_date
        if since is not None and (start is None or since > start):
            start = since
        if start is not None:
            conditions.append(InventoryAction.created_at >= start)
        if report_filter.end_date is not None:
            conditions.append(InventoryAction.created_at <= report_filter.end_date)
        if include_item_id and report_filter.item_id:
            conditions.append(InventoryAction.item_id == report_filter.item_id)
        return conditions

    async def _items(self, report_filter: ReportFilter, include_item_id: bool = True) -> list[InventoryItem]:
        query = self._item_query(report_filter, include_item_id).order_by(InventoryItem.name.asc())
        return list((await self.db.execute(query)).scalars().all())

    async def _trend_actions(self, report_filter: ReportFilter) -> list[InventoryAction]:
        since = datetime.now(timezone.utc) - timedelta(days=TREND_DAYS)
        result = await self.db.execute(
            select(InventoryAction).where(*self._action_conditions(report_filter, since, include_item_id=False))
        )
        return list(result.scalars().all())

    async def inventory_report(self, report_filter: ReportFilter) -> dict:
        """Summary, per-item rows and the most recent matching actions."""
        items = await self._items(report_filter)

        result = await self.db.execute(
            select(InventoryAction, InventoryItem.name, InventoryItem.sku, User.name)
            .join(InventoryItem, InventoryItem.id == InventoryAction.item_id)
            .join(User, User.id == InventoryAction.user_id)
            .where(*self._action_conditions(report_filter))
            .order_by(InventoryAction.created_at.desc())
            .limit(RECENT_ACTIONS_LIMIT)
        )
        actions = [
            {
                "id": action.id,
                "type": action.type,
                "quantity": action.quantity,
                "item_name": item_name,
                "item_sku": item_sku,
                "user_name": user_name,
                "created_at": as_utc(action.created_at).isoformat(),
            }
            for action, item_name, item_sku, user_name in result.all()
        ]

        summary = {
            "total_items": len(items),
            "total_value": money_out(total_value(items)),
            "low_stock_items": sum(1 for i in items if i.stock_level <= i.min_stock),
            "categories": len({i.category for i in items}),
            "locations": len({i.location for i in items}),
        }
        rows = [
            {
                "id": item.id,
                "name": item.name,
                "sku": item.sku,
                "category": item.category,
                "location": item.location,
                "stock_level": item.stock_level,
                "min_stock": item.min_stock,
                "unit_price": money_out(item.unit_price),
                "total_value": money_out(item_value(item)),
                "status": item_status(item.stock_level, item.min_stock),
            }
            for item in items
        ]
        return {
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "summary": summary,
            "items": rows,
            "actions": actions,
        }

    async def inventory_metrics(self, report_filter: ReportFilter) -> dict:
        items = await self._items(report_filter, include_item_id=False)
        total_actions = (
            await self.db.execute(
                select(func.count(InventoryAction.id)).where(
                    *self._action_conditions(report_filter, include_item_id=False)
                )
            )
        ).scalar() or 0
        trend_actions = await self._trend_actions(report_filter)

        return {
            "total_items": len(items),
            "total_value": money_out(total_value(items)),
            "low_stock_count": sum(1 for i in items if i.stock_level <= i.min_stock),
            "out_of_stock_count": sum(1 for i in items if i.stock_level == 0),
            "total_actions": total_actions,
            "top_categories": top_groups(items, "category"),
            "top_locations": top_groups(items, "location"),
            "recent_actions": action_trends(trend_actions),
            "stock_trends": stock_trends(trend_actions),
        }

    async def dashboard_metrics(self, report_filter: ReportFilter) -> dict:
        items = await self._items(report_filter, include_item_id=False)
        low = [i for i in items if i.stock_level <= i.min_stock]
        out = [i for i in low if i.stock_level == 0]
        value = total_value(items)

        result = await self.db.execute(
            select(InventoryAction, InventoryItem.name, InventoryItem.sku)
            .join(InventoryItem, InventoryItem.id == InventoryAction.item_id)
            .where(*self._action_conditions(report_filter, include_item_id=False))
        )
        action_rows = result.all()

        recent_alerts = [
            {
                "id": item.id,
                "item_name": item.name,
                "item_sku": item.sku,
                "current_stock": item.stock_level,
                "min_stock": item.min_stock,
                "severity": "critical" if item.stock_level == 0 else "warning",
                "created_at": as_utc(item.updated_at).isoformat(),
            }
            for item in sorted(low, key=lambda i: as_utc(i.updated_at), reverse=True)[:TOP_N]
        ]

        trend_actions = await self._trend_actions(report_filter)
        today = datetime.now(timezone.utc).date()

        return {
            "overview": {
                "total_items": len(items),
                "total_value": money_out(value),
                "low_stock_count": len(low),
                "out_of_stock_count": len(out),
                "total_categories": len({i.category for i in items}),
                "total_locations": len({i.location for i in items}),
            },
            "alerts": {
                "critical_alerts": len(out),
                "warning_alerts": len(low) - len(out),
                "recent_alerts": recent_alerts,
            },
            "performance": {
                "stock_turnover": len(action_rows),
                "average_stock_level": (
                    sum(i.stock_level for i in items) / len(items) if items else 0
                ),
                "stock_accuracy": STOCK_ACCURACY,
                "top_moving_items": top_moving_items(action_rows),
            },
            "trends": {
                "stock_movements": stock_movements(trend_actions),
                "value_changes": simulated_value_changes(value, today, self.rng),
            },
        }

    async def activity_counts(self, since: datetime) -> int:
        result = await self.db.execute(
            select(func.count(InventoryAction.id)).where(InventoryAction.created_at >= since)
        )
        return result.scalar() or 0

