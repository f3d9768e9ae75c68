"""Stock monitoring scheduler.

Two in-process jobs on an APScheduler ``AsyncIOScheduler``:
- every MONITORING_INTERVAL_MINUTES, scan low-stock alerts and push them to
  WebSocket subscribers (also run once at startup)
- daily at 03:00 UTC, prune audit log entries older than AUDIT_RETENTION_DAYS

Jobs run in this process only; with several replicas each one schedules
its own copy.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from inventory_api.config import settings
from inventory_api.database import async_session_maker
from inventory_api.services.alert_service import run_alert_check
from inventory_api.services.audit_service import AuditLogService
from inventory_api.services.websocket_manager import InventoryNotifier, manager

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler: Optional[AsyncIOScheduler] = None


def get_scheduler() -> AsyncIOScheduler:
    """Get or create the scheduler instance."""
    global scheduler
    if scheduler is None:
        scheduler = AsyncIOScheduler(timezone="UTC")
    return scheduler


async def check_stock_levels(session_factory=None, notifier: Optional[InventoryNotifier] = None) -> dict:
    """Job: scan current alerts and broadcast them.

    Errors are logged and reported in the returned summary; a failed run
    never stops the schedule.
    """
    session_factory = session_factory or async_session_maker
    notifier = notifier or InventoryNotifier(manager)
    logger.info("Performing inventory monitoring check...")

    try:
        async with session_factory() as db:
            outcome = await run_alert_check(db, notifier)
    except Exception as e:
        logger.error("Error during monitoring check: %s", e, exc_info=True)
        return {"status": "failed", "error": str(e)}

    for alert in outcome["alerts"]:
        if alert.severity.value == "OUT_OF_STOCK":
            logger.warning("Out of stock: %s (%s) at %s", alert.item_name, alert.sku, alert.location)
    return {
        "status": "completed",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "statistics": outcome["statistics"],
    }


async def prune_audit_logs(session_factory=None, days: Optional[int] = None) -> int:
    """Job: delete audit entries past the retention window."""
    session_factory = session_factory or async_session_maker
    days = days or settings.AUDIT_RETENTION_DAYS
    try:
        async with session_factory() as db:
            return await AuditLogService(db).delete_older_than(days)
    except Exception as e:
        logger.error("Audit log retention sweep failed: %s", e, exc_info=True)
        return 0


def start_alert_scheduler(interval_minutes: Optional[int] = None):
    """Start the scheduler with the monitoring and retention jobs."""
    global scheduler

    scheduler = get_scheduler()
    interval_minutes = interval_minutes or settings.MONITORING_INTERVAL_MINUTES

    scheduler.add_job(
        check_stock_levels,
        IntervalTrigger(minutes=interval_minutes),
        id="stock_monitoring",
        name="Check stock levels and broadcast alerts",
        next_run_time=datetime.now(timezone.utc),
        replace_existing=True,
    )
    scheduler.add_job(
        prune_audit_logs,
        CronTrigger(hour=3, minute=0),
        id="audit_retention",
        name="Prune old audit logs",
        replace_existing=True,
    )

    if not scheduler.running:
        scheduler.start()
        logger.info("Starting inventory monitoring service (checking every %d minutes)", interval_minutes)
        for job in scheduler.get_jobs():
            logger.info("  - %s: %s", job.name, job.trigger)


def stop_alert_scheduler():
    """Stop the scheduler."""
    global scheduler

    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Inventory monitoring service stopped")


def scheduler_status() -> dict:
    running = bool(scheduler and scheduler.running)
    jobs = []
    if running:
        jobs = [
            {"id": job.id, "name": job.name, "next_run_time": job.next_run_time}
            for job in scheduler.get_jobs()
        ]
    return {"is_running": running, "jobs": jobs}
