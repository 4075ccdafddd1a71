import logging
import math
import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from dateutil.parser import ParserError, parse as parse_datetime
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from fintrack.data.repositories.invoice_repository import (
    InvoiceORM,
    build_item_rows,
    delete_invoice_orm,
    get_invoice_orm,
    invoice_to_domain,
    max_number_with_prefix,
    query_invoices,
)
from fintrack.data.repositories.reference_repository import (
    CategoryORM,
    DivisionORM,
    PicORM,
    SubcategoryORM,
    get_by_id,
)
from fintrack.domain.errors import (
    InternalError,
    NotFoundError,
    ValidationError,
    translate_integrity_error,
)
from fintrack.domain.helpers.timezone import normalize_bound, now_wib, to_wib_naive
from fintrack.domain.models.invoice import Invoice, InvoiceFilter, LineItem

logger = logging.getLogger(__name__)

REFERENCE_FIELDS = ("pic_id", "division_id", "category_id", "subcategory_id")
NUMBER_PREFIX = "INV"
_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass
class InvoiceDraft:
    """A validated create/update request, ready to be written."""

    pic_id: int
    division_id: int
    category_id: int
    subcategory_id: int
    date: datetime
    title: str
    notes: Optional[str]
    items: List[LineItem]

    @property
    def total_amount(self) -> float:
        return sum(item.amount for item in self.items)


def _parse_number(value: Any) -> Optional[float]:
    """Parse a numeric value; None when it is missing or not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _parse_reference_id(name: str, value: Any) -> int:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(
            "Missing required fields (pic_id, division_id, category_id, subcategory_id)",
            {"field": name},
        )
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an id", {"field": name})
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an id", {"field": name})


def _parse_date(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, str):
        if not value.strip():
            return None
        try:
            return parse_datetime(value)
        except (ParserError, OverflowError):
            pass
    raise ValidationError("date must be a datetime", {"field": "date"})


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _item_error(index: int, field: str, message: str) -> ValidationError:
    return ValidationError(
        f"Item {index + 1}: {message}", {"index": index, "field": field}
    )


def parse_line_item(index: int, raw: Any) -> LineItem:
    """
    Validate one submitted line item. Client-sent ``amount`` is ignored; the
    amount is always recomputed from quantity and price.
    """
    if not isinstance(raw, Mapping):
        raise _item_error(index, "item", "must be an object")
    item_name = _text(raw.get("item_name"))
    if not item_name:
        raise _item_error(index, "item_name", "item name is required")
    quantity = _parse_number(raw.get("quantity"))
    if quantity is None:
        raise _item_error(index, "quantity", "quantity must be a number")
    if quantity <= 0:
        raise _item_error(index, "quantity", "quantity must be greater than 0")
    unit = _text(raw.get("unit"))
    if not unit:
        raise _item_error(index, "unit", "unit is required")
    price = _parse_number(raw.get("price_per_unit"))
    if price is None:
        raise _item_error(index, "price_per_unit", "price per unit must be a number")
    if price < 0:
        raise _item_error(index, "price_per_unit", "price per unit cannot be negative")
    return LineItem(
        item_name=item_name,
        quantity=quantity,
        unit=unit,
        price_per_unit=price,
        description=_text(raw.get("description")) or None,
    )


def validate_invoice_input(data: Mapping[str, Any]) -> InvoiceDraft:
    """
    Validation order: reference ids, then a non-empty item list, then each
    item in submission order. The first failure rejects the whole request.
    """
    ids = {name: _parse_reference_id(name, data.get(name)) for name in REFERENCE_FIELDS}

    raw_items = data.get("items")
    if not isinstance(raw_items, (list, tuple)) or len(raw_items) == 0:
        raise ValidationError("Invoice must have at least one item", {"field": "items"})
    items = [parse_line_item(i, raw) for i, raw in enumerate(raw_items)]

    date = _parse_date(data.get("date"))

    title = _text(data.get("title")) or items[0].item_name
    return InvoiceDraft(
        date=to_wib_naive(date),
        title=title,
        notes=_text(data.get("notes")) or None,
        items=items,
        **ids,
    )


def _check_references(
    db: Session, draft: InvoiceDraft, current_pic_id: Optional[int] = None
) -> None:
    pic = get_by_id(db, PicORM, draft.pic_id)
    division = get_by_id(db, DivisionORM, draft.division_id)
    category = get_by_id(db, CategoryORM, draft.category_id)
    subcategory = get_by_id(db, SubcategoryORM, draft.subcategory_id)
    for field, row, label in (
        ("pic_id", pic, "PIC"),
        ("division_id", division, "Division"),
        ("category_id", category, "Category"),
        ("subcategory_id", subcategory, "Subcategory"),
    ):
        if row is None:
            raise ValidationError(f"{label} not found", {"field": field})
    if subcategory.category_id != category.id:
        raise ValidationError(
            "Subcategory does not belong to the selected category",
            {"field": "subcategory_id"},
        )
    if pic.division_id != division.id:
        raise ValidationError(
            "PIC does not belong to the selected division", {"field": "pic_id"}
        )
    # An invoice may keep the PIC it already has after that PIC is deactivated.
    if not pic.is_active and pic.id != current_pic_id:
        raise ValidationError("PIC is no longer active", {"field": "pic_id"})


def next_invoice_number(db: Session) -> str:
    prefix = f"{NUMBER_PREFIX}-{now_wib().strftime('%Y%m%d')}-"
    last = max_number_with_prefix(db, prefix)
    # Suffixes are zero-padded, so the string max is the highest sequence.
    sequence = int(last[len(prefix):]) + 1 if last else 1
    return f"{prefix}{sequence:04d}"


def _apply_draft(invoice_orm: InvoiceORM, draft: InvoiceDraft) -> None:
    invoice_orm.pic_id = draft.pic_id
    invoice_orm.division_id = draft.division_id
    invoice_orm.category_id = draft.category_id
    invoice_orm.subcategory_id = draft.subcategory_id
    invoice_orm.date = draft.date
    invoice_orm.title = draft.title
    invoice_orm.notes = draft.notes
    invoice_orm.total_amount = draft.total_amount


def _commit_or_rollback(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise translate_integrity_error(e, "Invoice") from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Storage failure while writing invoice")
        raise InternalError("Internal server error") from e


def create_invoice(db: Session, data: Mapping[str, Any]) -> Invoice:
    draft = validate_invoice_input(data)
    _check_references(db, draft)
    invoice_orm = InvoiceORM(invoice_number=next_invoice_number(db))
    _apply_draft(invoice_orm, draft)
    try:
        db.add(invoice_orm)
        db.flush()
        invoice_orm.items.extend(build_item_rows(draft.items))
        db.flush()
    except SQLAlchemyError as e:
        # Parent and items share one transaction; nothing is left behind.
        db.rollback()
        if isinstance(e, IntegrityError):
            raise translate_integrity_error(e, "Invoice") from e
        logger.exception("Storage failure while creating invoice")
        raise InternalError("Internal server error") from e
    _commit_or_rollback(db)
    logger.info(
        "Created invoice %s with %d items, total %s",
        invoice_orm.invoice_number,
        len(draft.items),
        draft.total_amount,
    )
    return get_invoice(db, invoice_orm.id)


def update_invoice(db: Session, invoice_id: int, data: Mapping[str, Any]) -> Invoice:
    invoice_orm = get_invoice_orm(db, invoice_id)
    if invoice_orm is None:
        raise NotFoundError("Invoice not found")
    draft = validate_invoice_input(data)
    _check_references(db, draft, current_pic_id=invoice_orm.pic_id)
    try:
        # Replace the whole item list: the old rows are deleted and flushed
        # before the new rows are inserted.
        invoice_orm.items.clear()
        db.flush()
        invoice_orm.items.extend(build_item_rows(draft.items))
        _apply_draft(invoice_orm, draft)
        db.flush()
    except SQLAlchemyError as e:
        db.rollback()
        if isinstance(e, IntegrityError):
            raise translate_integrity_error(e, "Invoice") from e
        logger.exception("Storage failure while updating invoice %s", invoice_id)
        raise InternalError("Internal server error") from e
    _commit_or_rollback(db)
    logger.info("Updated invoice %s, total %s", invoice_id, draft.total_amount)
    return get_invoice(db, invoice_id)


def get_invoice(db: Session, invoice_id: int) -> Invoice:
    invoice_orm = get_invoice_orm(db, invoice_id)
    if invoice_orm is None:
        raise NotFoundError("Invoice not found")
    return invoice_to_domain(invoice_orm)


def parse_filter_bound(name: str, value: Any) -> Optional[Union[date, datetime]]:
    """A bare YYYY-MM-DD stays a date so it can cover a whole day."""
    if value is None or isinstance(value, (date, datetime)):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        if _DATE_ONLY.match(text):
            return date.fromisoformat(text)
        return parse_datetime(text)
    except (ParserError, OverflowError, ValueError):
        raise ValidationError(f"{name} must be an ISO date or datetime", {"field": name})


def build_invoice_filter(
    date_from=None,
    date_to=None,
    division_id: Optional[int] = None,
    category_id: Optional[int] = None,
    subcategory_id: Optional[int] = None,
    pic_id: Optional[int] = None,
) -> InvoiceFilter:
    """Normalize raw filter values the same way stored dates are normalized."""
    return InvoiceFilter(
        date_from=normalize_bound(parse_filter_bound("date_from", date_from)),
        date_to=normalize_bound(
            parse_filter_bound("date_to", date_to), end_of_day=True
        ),
        division_id=division_id,
        category_id=category_id,
        subcategory_id=subcategory_id,
        pic_id=pic_id,
    )


def list_invoices(
    db: Session,
    invoice_filter: Optional[InvoiceFilter] = None,
    limit: Optional[int] = None,
) -> List[Invoice]:
    rows = query_invoices(db, invoice_filter or InvoiceFilter(), limit=limit)
    return [invoice_to_domain(r) for r in rows]


def delete_invoice(db: Session, invoice_id: int) -> None:
    invoice_orm = get_invoice_orm(db, invoice_id)
    if invoice_orm is None:
        raise NotFoundError("Invoice not found")
    try:
        delete_invoice_orm(db, invoice_orm)
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Storage failure while deleting invoice %s", invoice_id)
        raise InternalError("Internal server error") from e
    logger.info("Deleted invoice %s", invoice_id)


def invoices_to_dicts(invoices: Sequence[Invoice]) -> List[Dict[str, Any]]:
    return [invoice.to_dict() for invoice in invoices]

