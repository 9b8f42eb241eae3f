"""
Completed-jobs Excel export.

One workbook, two sheets:
    Completed Jobs  → one row per completed job, newest completion first,
                      with the profitability roll-up per job
    Summary         → the same counts the completed-jobs listing returns

The workbook is built in memory and returned as a BytesIO ready for
``flask.send_file``; nothing is written to disk.
"""

import io
import logging
from datetime import datetime, timezone
from decimal import Decimal

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from fieldops.services import cost_service, job_service
from fieldops.utils.helpers import as_utc

logger = logging.getLogger(__name__)

HEADER_FILL = PatternFill(start_color="354A5F", end_color="354A5F", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True, size=11)
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)
MONEY_FORMAT = "#,##0.00"

COMPLETED_HEADERS = [
    "Job #", "Customer", "Location", "Operator", "Scheduled", "Completed",
    "Signed By", "Contact Not On Site", "Overall", "Cleanliness", "Communication",
    "Quoted", "Job Hours", "Labor Cost", "Overhead", "Net Profit", "Standby Hours",
]
MONEY_COLUMNS = {12, 14, 15, 16}


def _apply_header_style(ws, row: int, col_count: int) -> None:
    """Apply dark-header styling to an Excel row (1-indexed)."""
    for col in range(1, col_count + 1):
        cell = ws.cell(row=row, column=col)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.border = THIN_BORDER
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)


def _auto_width(ws) -> None:
    """Auto-size column widths based on content (capped at 60 chars)."""
    for col in ws.columns:
        max_len = 0
        col_letter = get_column_letter(col[0].column)
        for cell in col:
            if cell.value:
                max_len = max(max_len, min(len(str(cell.value)), 60))
        ws.column_dimensions[col_letter].width = max(max_len + 4, 12)


def _excel_datetime(value):
    """openpyxl rejects tz-aware datetimes; write naive UTC."""
    value = as_utc(value)
    return value.replace(tzinfo=None) if value is not None else None


def _row_for(job) -> list:
    costs = cost_service.costs_for_job(job)
    return [
        job.job_number,
        job.customer_name,
        job.location,
        job.assigned_operator.full_name if job.assigned_operator else "",
        job.scheduled_date,
        _excel_datetime(job.completed_at),
        job.completion_signer_name or "",
        "Yes" if job.contact_not_on_site else "No",
        job.customer_overall_rating,
        job.customer_cleanliness_rating,
        job.customer_communication_rating,
        float(costs.quoted_amount),
        float(costs.total_job_hours.quantize(Decimal("0.01"))),
        float(costs.labor_cost.quantize(Decimal("0.01"))),
        float(costs.overhead_amount.quantize(Decimal("0.01"))),
        float(costs.net_profit.quantize(Decimal("0.01"))),
        float(costs.total_standby_hours.quantize(Decimal("0.01"))),
    ]


def export_completed_jobs_xlsx(ctx) -> io.BytesIO:
    """Build the completed-jobs workbook for an admin session."""
    listing = job_service.completed_jobs(ctx)
    jobs, summary = listing["jobs"], listing["summary"]

    wb = Workbook()

    # ── Sheet 1: Completed Jobs ──────────────────────────────────────────
    ws = wb.active
    ws.title = "Completed Jobs"
    ws.append(COMPLETED_HEADERS)
    _apply_header_style(ws, 1, len(COMPLETED_HEADERS))

    for job in jobs:
        ws.append(_row_for(job))
        row = ws.max_row
        for col in range(1, len(COMPLETED_HEADERS) + 1):
            cell = ws.cell(row=row, column=col)
            cell.border = THIN_BORDER
            if col in MONEY_COLUMNS:
                cell.number_format = MONEY_FORMAT
    ws.freeze_panes = "A2"
    _auto_width(ws)

    # ── Sheet 2: Summary ─────────────────────────────────────────────────
    ws2 = wb.create_sheet("Summary")
    ws2["A1"] = "Completed Jobs Summary"
    ws2["A1"].font = Font(size=14, bold=True)
    ws2["A2"] = f"Generated: {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M UTC')}"
    ws2["A2"].font = Font(size=10, italic=True, color="666666")

    ws2.append([])
    ws2.append(["Metric", "Value"])
    _apply_header_style(ws2, ws2.max_row, 2)
    for label, value in (
        ("Total completed", summary["total"]),
        ("Customer signed", summary["signed"]),
        ("Contact not on site", summary["contact_not_on_site"]),
        ("Average customer rating", summary["average_customer_rating"]),
    ):
        ws2.append([label, value if value is not None else "n/a"])
    _auto_width(ws2)

    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    logger.info("Exported %d completed job(s) to xlsx", len(jobs))
    return buf
