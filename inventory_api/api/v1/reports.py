"""Reports API - inventory report, metrics, dashboard and file export."""

from fastapi import APIRouter, Depends, Response
from pydantic import ValidationError
from datetime import datetime
from typing import Annotated, Optional
import logging

from inventory_api.api.deps import DbSession, CurrentUser
from inventory_api.exceptions import InvalidArgumentError
from inventory_api.schemas.report import ReportFilter
from inventory_api.services.bulk_operations import format_validation_error
from inventory_api.services.export_service import MEDIA_TYPES, export_filename, parse_format, render_report
from inventory_api.services.reporting_service import ReportingService

logger = logging.getLogger(__name__)
router = APIRouter()


def report_filter(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    category: Optional[str] = None,
    location: Optional[str] = None,
    item_id: Optional[str] = None,
) -> ReportFilter:
    """Build the report filter from query parameters; an inverted range is a 400."""
    try:
        return ReportFilter(
            start_date=start_date, end_date=end_date, category=category, location=location, item_id=item_id
        )
    except ValidationError as e:
        raise InvalidArgumentError(format_validation_error(e)) from None


Filter = Annotated[ReportFilter, Depends(report_filter)]


@router.get("/inventory")
async def inventory_report(db: DbSession, current_user: CurrentUser, filters: Filter):
    return await ReportingService(db).inventory_report(filters)


@router.get("/metrics")
async def inventory_metrics(db: DbSession, current_user: CurrentUser, filters: Filter):
    return await ReportingService(db).inventory_metrics(filters)


@router.get("/dashboard")
async def dashboard_metrics(db: DbSession, current_user: CurrentUser, filters: Filter):
    return await ReportingService(db).dashboard_metrics(filters)


@router.get("/export/{format}")
async def export_report(format: str, db: DbSession, current_user: CurrentUser, filters: Filter):
    """Download the inventory report as CSV, JSON or PDF."""
    fmt = parse_format(format)
    report = await ReportingService(db).inventory_report(filters)
    content = render_report(report, fmt)
    filename = export_filename(fmt)
    logger.info("Exported %s report (%d items)", fmt.value, len(report["items"]))
    return Response(
        content=content,
        media_type=MEDIA_TYPES[fmt],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
