from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship, selectinload

from fintrack.data.base import Base
from fintrack.data.repositories import reference_repository  # noqa: F401
from fintrack.domain.helpers.timezone import from_wib_naive
from fintrack.domain.models.invoice import Invoice, InvoiceFilter, LineItem


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class InvoiceORM(Base):
    __tablename__ = "invoices"
    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    invoice_number = Column(String, unique=True, nullable=False, index=True)
    title = Column(String, nullable=False)
    # WIB wall-clock time, see fintrack.domain.helpers.timezone
    date = Column(DateTime, nullable=False, index=True)
    notes = Column(Text, nullable=True)
    total_amount = Column(Float, nullable=False, default=0.0)
    pic_id = Column(Integer, ForeignKey("pics.id"), nullable=False, index=True)
    division_id = Column(
        Integer, ForeignKey("divisions.id"), nullable=False, index=True
    )
    category_id = Column(
        Integer, ForeignKey("categories.id"), nullable=False, index=True
    )
    subcategory_id = Column(
        Integer, ForeignKey("subcategories.id"), nullable=False, index=True
    )
    created_at = Column(DateTime, nullable=False, default=_utcnow)
    updated_at = Column(DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    items = relationship(
        "InvoiceItemORM",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItemORM.position",
    )
    pic = relationship("PicORM")
    division = relationship("DivisionORM")
    category = relationship("CategoryORM")
    subcategory = relationship("SubcategoryORM")


class InvoiceItemORM(Base):
    __tablename__ = "invoice_items"
    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    invoice_id = Column(
        Integer,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = Column(Integer, nullable=False, default=0)
    item_name = Column(String, nullable=False)
    quantity = Column(Float, nullable=False)
    unit = Column(String, nullable=False)
    price_per_unit = Column(Float, nullable=False)
    amount = Column(Float, nullable=False)
    description = Column(Text, nullable=True)

    invoice = relationship("InvoiceORM", back_populates="items")


def item_to_domain(item_orm: InvoiceItemORM) -> LineItem:
    return LineItem(
        id=item_orm.id,
        item_name=item_orm.item_name,
        quantity=item_orm.quantity,
        unit=item_orm.unit,
        price_per_unit=item_orm.price_per_unit,
        description=item_orm.description,
    )


def invoice_to_domain(invoice_orm: InvoiceORM) -> Invoice:
    return Invoice(
        id=invoice_orm.id,
        invoice_number=invoice_orm.invoice_number,
        title=invoice_orm.title,
        date=from_wib_naive(invoice_orm.date),
        pic_id=invoice_orm.pic_id,
        division_id=invoice_orm.division_id,
        category_id=invoice_orm.category_id,
        subcategory_id=invoice_orm.subcategory_id,
        total_amount=invoice_orm.total_amount,
        items=[item_to_domain(i) for i in invoice_orm.items],
        notes=invoice_orm.notes,
        pic_name=invoice_orm.pic.name if invoice_orm.pic else None,
        division_name=invoice_orm.division.name if invoice_orm.division else None,
        category_name=invoice_orm.category.name if invoice_orm.category else None,
        subcategory_name=(
            invoice_orm.subcategory.name if invoice_orm.subcategory else None
        ),
        created_at=invoice_orm.created_at,
        updated_at=invoice_orm.updated_at,
    )


def build_item_rows(items):
    return [
        InvoiceItemORM(
            position=position,
            item_name=item.item_name,
            quantity=item.quantity,
            unit=item.unit,
            price_per_unit=item.price_per_unit,
            amount=item.amount,
            description=item.description,
        )
        for position, item in enumerate(items)
    ]


def _with_relations(query):
    return query.options(
        selectinload(InvoiceORM.items),
        selectinload(InvoiceORM.pic),
        selectinload(InvoiceORM.division),
        selectinload(InvoiceORM.category),
        selectinload(InvoiceORM.subcategory),
    )


def get_invoice_orm(db, invoice_id: int):
    return (
        _with_relations(db.query(InvoiceORM))
        .filter(InvoiceORM.id == invoice_id)
        .first()
    )


def build_invoice_filters(invoice_filter: InvoiceFilter):
    """
    Build SQLAlchemy filter list for invoices.
    Date bounds must already be normalized to WIB wall-clock time.
    """
    filters = []
    if invoice_filter.date_from is not None:
        filters.append(InvoiceORM.date >= invoice_filter.date_from)
    if invoice_filter.date_to is not None:
        filters.append(InvoiceORM.date <= invoice_filter.date_to)
    if invoice_filter.division_id is not None:
        filters.append(InvoiceORM.division_id == invoice_filter.division_id)
    if invoice_filter.category_id is not None:
        filters.append(InvoiceORM.category_id == invoice_filter.category_id)
    if invoice_filter.subcategory_id is not None:
        filters.append(InvoiceORM.subcategory_id == invoice_filter.subcategory_id)
    if invoice_filter.pic_id is not None:
        filters.append(InvoiceORM.pic_id == invoice_filter.pic_id)
    return filters


def query_invoices(db, invoice_filter: InvoiceFilter, limit: int | None = None):
    query = _with_relations(db.query(InvoiceORM)).filter(
        *build_invoice_filters(invoice_filter)
    )
    query = query.order_by(InvoiceORM.created_at.desc(), InvoiceORM.id.desc())
    if limit is not None:
        query = query.limit(limit)
    return query.all()


def max_number_with_prefix(db, prefix: str):
    return (
        db.query(func.max(InvoiceORM.invoice_number))
        .filter(InvoiceORM.invoice_number.like(f"{prefix}%"))
        .scalar()
    )


def delete_invoice_orm(db, invoice_orm: InvoiceORM):
    db.delete(invoice_orm)
    db.commit()
