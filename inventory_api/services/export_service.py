"""Inventory report export to CSV, JSON and PDF.

Rendering is in memory: the route streams the returned bytes back with a
download filename, nothing is written to disk. PDFs are rendered from HTML
with WeasyPrint.
"""

import csv
import io
import json
import logging
from datetime import datetime, timezone
from html import escape

from inventory_api.exceptions import InvalidArgumentError
from inventory_api.schemas.report import ExportFormat

logger = logging.getLogger(__name__)

PDF_ITEM_LIMIT = 50

CSV_COLUMNS = [
    ("name", "Name"),
    ("sku", "SKU"),
    ("category", "Category"),
    ("location", "Location"),
    ("stock_level", "Stock Level"),
    ("min_stock", "Min Stock"),
    ("unit_price", "Unit Price"),
    ("total_value", "Total Value"),
    ("status", "Status"),
]

MEDIA_TYPES = {
    ExportFormat.CSV: "text/csv",
    ExportFormat.JSON: "application/json",
    ExportFormat.PDF: "application/pdf",
}


def parse_format(value: str) -> ExportFormat:
    try:
        return ExportFormat(value.lower())
    except ValueError:
        raise InvalidArgumentError("Invalid export format. Must be csv, json, or pdf") from None


def export_filename(fmt: ExportFormat, now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"inventory-report-{now.strftime('%Y-%m-%dT%H-%M-%S')}.{fmt.value}"


def render_csv(report: dict) -> bytes:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow([title for _, title in CSV_COLUMNS])
    for item in report["items"]:
        writer.writerow([item[key] for key, _ in CSV_COLUMNS])
    return buffer.getvalue().encode("utf-8")


def render_json(report: dict) -> bytes:
    payload = {
        "generated_at": report.get("generated_at") or datetime.now(timezone.utc).isoformat(),
        "summary": report["summary"],
        "items": report["items"],
        "recent_actions": report["actions"],
    }
    return json.dumps(payload, indent=2, default=str).encode("utf-8")


def _truncate(text: str, width: int) -> str:
    return text if len(text) <= width else text[:width] + "..."


def build_report_html(report: dict) -> str:
    """HTML document for the PDF export; at most 50 item rows."""
    summary = report["summary"]
    items = report["items"]
    generated = report.get("generated_at") or datetime.now(timezone.utc).isoformat()

    rows = "".join(
        "<tr>"
        f"<td>{escape(_truncate(item['name'], 30))}</td>"
        f"<td>{escape(item['sku'])}</td>"
        f"<td>{escape(_truncate(item['category'], 20))}</td>"
        f"<td>{escape(_truncate(item['location'], 20))}</td>"
        f"<td class=\"num\">{item['stock_level']}</td>"
        f"<td class=\"num\">{item['min_stock']}</td>"
        f"<td class=\"status-{item['status']}\">{escape(item['status'].replace('_', ' '))}</td>"
        "</tr>"
        for item in items[:PDF_ITEM_LIMIT]
    )
    overflow = ""
    if len(items) > PDF_ITEM_LIMIT:
        overflow = (
            f"<p class=\"note\">... and {len(items) - PDF_ITEM_LIMIT} more items "
            "(see CSV/JSON export for complete data)</p>"
        )

    return f"""<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<style>
  @page {{ size: A4; margin: 18mm 14mm; }}
  body {{ font-family: Helvetica, Arial, sans-serif; font-size: 10pt; color: #1f2937; }}
  h1 {{ text-align: center; margin-bottom: 2px; }}
  .generated {{ text-align: center; color: #6b7280; margin-bottom: 16px; }}
  h2 {{ border-bottom: 1px solid #d1d5db; padding-bottom: 2px; }}
  table {{ width: 100%; border-collapse: collapse; }}
  th, td {{ text-align: left; padding: 3px 4px; border-bottom: 1px solid #e5e7eb; }}
  td.num {{ text-align: right; }}
  .status-out_of_stock {{ color: #dc2626; font-weight: bold; }}
  .status-low_stock {{ color: #d97706; }}
  .note {{ color: #6b7280; font-style: italic; }}
</style>
</head>
<body>
  <h1>Inventory Report</h1>
  <div class="generated">Generated on: {escape(generated[:10])}</div>
  <h2>Summary</h2>
  <p>Total Items: {summary['total_items']}<br>
     Total Value: ${summary['total_value']:,.2f}<br>
     Low Stock Items: {summary['low_stock_items']}<br>
     Categories: {summary['categories']}<br>
     Locations: {summary['locations']}</p>
  <h2>Inventory Items</h2>
  <table>
    <thead><tr><th>Name</th><th>SKU</th><th>Category</th><th>Location</th><th>Stock</th><th>Min Stock</th><th>Status</th></tr></thead>
    <tbody>{rows}</tbody>
  </table>
  {overflow}
</body>
</html>"""


def render_pdf(report: dict) -> bytes:
    from weasyprint import HTML

    return HTML(string=build_report_html(report)).write_pdf()


def render_report(report: dict, fmt: ExportFormat) -> bytes:
    """Render an inventory report (as built by ReportingService) to bytes."""
    if fmt == ExportFormat.CSV:
        return render_csv(report)
    if fmt == ExportFormat.JSON:
        return render_json(report)
    if fmt == ExportFormat.PDF:
        logger.info("Rendering PDF report with %d items", len(report["items"]))
        return render_pdf(report)
    raise InvalidArgumentError(f"Unsupported export format: {fmt}")
