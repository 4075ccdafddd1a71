# fintrack/domain/models/invoice.py
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass
class LineItem:
    item_name: str
    quantity: float
    unit: str
    price_per_unit: float
    amount: float = 0.0
    description: Optional[str] = None
    id: Optional[int] = None

    def __post_init__(self):
        if self.quantity <= 0:
            raise ValueError("Line item quantity must be greater than zero.")
        if self.price_per_unit < 0:
            raise ValueError("Line item price per unit cannot be negative.")
        self.amount = self.quantity * self.price_per_unit

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_name": self.item_name,
            "quantity": self.quantity,
            "unit": self.unit,
            "price_per_unit": self.price_per_unit,
            "amount": self.amount,
            "description": self.description,
        }


@dataclass
class Invoice:
    id: int
    invoice_number: str
    title: str
    date: datetime
    pic_id: int
    division_id: int
    category_id: int
    subcategory_id: int
    total_amount: float
    items: List[LineItem] = field(default_factory=list)
    notes: Optional[str] = None
    pic_name: Optional[str] = None
    division_name: Optional[str] = None
    category_name: Optional[str] = None
    subcategory_name: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "title": self.title,
            "date": self.date.isoformat(),
            "pic_id": self.pic_id,
            "division_id": self.division_id,
            "category_id": self.category_id,
            "subcategory_id": self.subcategory_id,
            "pic_name": self.pic_name,
            "division_name": self.division_name,
            "category_name": self.category_name,
            "subcategory_name": self.subcategory_name,
            "notes": self.notes,
            "total_amount": self.total_amount,
            "items": [item.to_dict() for item in self.items],
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class InvoiceFilter:
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    division_id: Optional[int] = None
    category_id: Optional[int] = None
    subcategory_id: Optional[int] = None
    pic_id: Optional[int] = None
