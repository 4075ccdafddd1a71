from enum import Enum

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from fintrack.data.base import get_db
from fintrack.domain.errors import ValidationError
from fintrack.domain.models.user import Identity
from fintrack.domain.services.report_service import (
    dashboard_report,
    export_invoices_csv,
    export_invoices_xlsx,
    summary_report,
    trend_report,
)
from fintrack.presentation.guard import current_identity
from fintrack.presentation.invoices_api import InvoiceListParams, invoice_list_params

router = APIRouter(prefix="/api/reports", tags=["reports"])


class ExportFormat(str, Enum):
    CSV = "csv"
    XLSX = "xlsx"


@router.get("/summary")
def get_summary(
    group_by: str = Query("category", description="category, division, pic or month"),
    params: InvoiceListParams = Depends(invoice_list_params),
    identity: Identity = Depends(current_identity),
    db: Session = Depends(get_db),
):
    invoice_filter = params.to_filter()
    try:
        return summary_report(db, invoice_filter, group_by)
    except ValueError as e:
        raise ValidationError(str(e), {"field": "group_by"})


@router.get("/trend")
def get_trend(
    days: int = Query(7, ge=1, le=366),
    params: InvoiceListParams = Depends(invoice_list_params),
    identity: Identity = Depends(current_identity),
    db: Session = Depends(get_db),
):
    return trend_report(db, days=days, invoice_filter=params.to_filter())


@router.get("/dashboard")
def get_dashboard(
    identity: Identity = Depends(current_identity), db: Session = Depends(get_db)
):
    return dashboard_report(db)


@router.get("/export")
def export_invoices(
    format: ExportFormat = ExportFormat.XLSX,
    params: InvoiceListParams = Depends(invoice_list_params),
    identity: Identity = Depends(current_identity),
    db: Session = Depends(get_db),
):
    if format == ExportFormat.CSV:
        return export_invoices_csv(db, params.to_filter())
    return export_invoices_xlsx(db, params.to_filter())
