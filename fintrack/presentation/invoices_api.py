from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from fintrack.data.base import get_db
from fintrack.domain.models.user import Identity
from fintrack.domain.services.invoice_service import (
    build_invoice_filter,
    create_invoice,
    delete_invoice,
    get_invoice,
    invoices_to_dicts,
    list_invoices,
    update_invoice,
)
from fintrack.presentation.guard import current_identity

router = APIRouter(prefix="/api/invoices", tags=["invoices"])


class InvoiceRequest(BaseModel):
    # Ids and items stay loosely typed: the service validates them and reports
    # the offending field or item row itself.
    pic_id: Optional[Any] = None
    division_id: Optional[Any] = None
    category_id: Optional[Any] = None
    subcategory_id: Optional[Any] = None
    date: Optional[datetime] = None
    title: Optional[str] = None
    notes: Optional[str] = None
    items: Optional[List[Any]] = Field(default=None)


class InvoiceListParams(BaseModel):
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    division_id: Optional[int] = None
    category_id: Optional[int] = None
    subcategory_id: Optional[int] = None
    pic_id: Optional[int] = None

    def to_filter(self):
        return build_invoice_filter(**self.model_dump())


def invoice_list_params(
    date_from: Optional[str] = Query(None, description="ISO date or datetime"),
    date_to: Optional[str] = Query(None, description="ISO date or datetime"),
    division_id: Optional[int] = None,
    category_id: Optional[int] = None,
    subcategory_id: Optional[int] = None,
    pic_id: Optional[int] = None,
) -> InvoiceListParams:
    return InvoiceListParams(
        date_from=date_from,
        date_to=date_to,
        division_id=division_id,
        category_id=category_id,
        subcategory_id=subcategory_id,
        pic_id=pic_id,
    )


@router.get("")
def get_all_invoices_endpoint(
    params: InvoiceListParams = Depends(invoice_list_params),
    identity: Identity = Depends(current_identity),
    db: Session = Depends(get_db),
) -> List[Dict[str, Any]]:
    return invoices_to_dicts(list_invoices(db, params.to_filter()))


@router.post("", status_code=201)
def create_invoice_endpoint(
    req: InvoiceRequest,
    identity: Identity = Depends(current_identity),
    db: Session = Depends(get_db),
):
    return create_invoice(db, req.model_dump()).to_dict()


@router.get("/{invoice_id}")
def get_invoice_endpoint(
    invoice_id: int,
    identity: Identity = Depends(current_identity),
    db: Session = Depends(get_db),
):
    return get_invoice(db, invoice_id).to_dict()


@router.put("/{invoice_id}")
def update_invoice_endpoint(
    invoice_id: int,
    req: InvoiceRequest,
    identity: Identity = Depends(current_identity),
    db: Session = Depends(get_db),
):
    return update_invoice(db, invoice_id, req.model_dump()).to_dict()


@router.delete("/{invoice_id}")
def delete_invoice_endpoint(
    invoice_id: int,
    identity: Identity = Depends(current_identity),
    db: Session = Depends(get_db),
):
    delete_invoice(db, invoice_id)
    return {"success": True, "message": "Invoice deleted successfully"}
