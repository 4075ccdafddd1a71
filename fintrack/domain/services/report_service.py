import csv
import io
import logging
from dataclasses import replace
from datetime import date, timedelta
from typing import List, Optional

import openpyxl
from fastapi.responses import StreamingResponse
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from sqlalchemy.orm import Session

from fintrack.domain.helpers.aggregation import daily_series, group_totals
from fintrack.domain.helpers.timezone import normalize_bound, now_wib
from fintrack.domain.models.invoice import Invoice, InvoiceFilter
from fintrack.domain.services.invoice_service import list_invoices

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    "No",
    "Invoice Number",
    "Title",
    "Date",
    "Division",
    "Category",
    "Subcategory",
    "PIC",
    "Item Count",
    "Total Amount",
    "Notes",
]
EXPORT_COLUMN_WIDTHS = [5, 20, 30, 18, 15, 15, 15, 15, 10, 15, 30]
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def summary_report(db: Session, invoice_filter: InvoiceFilter, group_by: str) -> dict:
    invoices = list_invoices(db, invoice_filter)
    return group_totals(invoices, group_by).to_dict()


def trend_report(
    db: Session,
    days: int = 7,
    today: Optional[date] = None,
    invoice_filter: Optional[InvoiceFilter] = None,
) -> dict:
    end = today or now_wib().date()
    window = replace(
        invoice_filter or InvoiceFilter(),
        date_from=normalize_bound(end - timedelta(days=days - 1)),
        date_to=normalize_bound(end, end_of_day=True),
    )
    invoices = list_invoices(db, window)
    return {"days": days, "series": daily_series(invoices, days=days, today=end)}


def dashboard_report(db: Session, today: Optional[date] = None) -> dict:
    invoices = list_invoices(db)
    summary = group_totals(invoices, "category")
    trend = trend_report(db, days=7, today=today)
    return {
        "recent_invoices": [inv.to_dict() for inv in invoices[:3]],
        "trend": trend["series"],
        "grand_total": summary.grand_total,
        "invoice_count": summary.invoice_count,
        "by_category": [g.to_dict() for g in summary.groups],
    }


def _export_rows(invoices: List[Invoice]) -> List[list]:
    rows = []
    for index, inv in enumerate(invoices, start=1):
        rows.append(
            [
                index,
                inv.invoice_number,
                inv.title,
                inv.date.strftime("%Y-%m-%d %H:%M"),
                inv.division_name or "",
                inv.category_name or "",
                inv.subcategory_name or "",
                inv.pic_name or "",
                len(inv.items),
                inv.total_amount,
                inv.notes or "",
            ]
        )
    total = sum(inv.total_amount for inv in invoices)
    rows.append(["", "", "TOTAL", "", "", "", "", "", len(invoices), total, ""])
    return rows


def _export_filename(extension: str) -> str:
    return f"expense-report-{now_wib().strftime('%Y-%m-%d')}.{extension}"


def export_invoices_csv(db: Session, invoice_filter: InvoiceFilter):
    invoices = list_invoices(db, invoice_filter)
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(EXPORT_COLUMNS)
    for row in _export_rows(invoices):
        writer.writerow(row)
    output.seek(0)
    logger.info("Exported %d invoices as CSV", len(invoices))
    return StreamingResponse(
        output,
        media_type="text/csv",
        headers={
            "Content-Disposition": f"attachment; filename={_export_filename('csv')}"
        },
    )


def build_invoice_workbook(invoices: List[Invoice]) -> openpyxl.Workbook:
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Expense Report"
    ws.append(EXPORT_COLUMNS)
    for cell in ws[1]:
        cell.font = Font(bold=True)
    rows = _export_rows(invoices)
    for row in rows:
        ws.append(row)
    # Summary row is the last one.
    for cell in ws[ws.max_row]:
        cell.font = Font(bold=True)
    for i, width in enumerate(EXPORT_COLUMN_WIDTHS, start=1):
        ws.column_dimensions[get_column_letter(i)].width = width
    return wb


def export_invoices_xlsx(db: Session, invoice_filter: InvoiceFilter):
    invoices = list_invoices(db, invoice_filter)
    output = io.BytesIO()
    build_invoice_workbook(invoices).save(output)
    output.seek(0)
    logger.info("Exported %d invoices as XLSX", len(invoices))
    return StreamingResponse(
        output,
        media_type=XLSX_MEDIA_TYPE,
        headers={
            "Content-Disposition": f"attachment; filename={_export_filename('xlsx')}"
        },
    )
