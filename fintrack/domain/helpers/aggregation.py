from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Callable, Dict, List, Optional, Sequence

from fintrack.domain.helpers.timezone import now_wib, wib_date
from fintrack.domain.models.invoice import Invoice

GROUP_BY_FIELDS = ("category", "division", "pic", "month")

_FALLBACK_KEYS = {
    "category": "Uncategorized",
    "division": "No division",
    "pic": "No PIC",
}


@dataclass
class GroupTotal:
    key: str
    total: float
    percentage: float = 0.0

    def to_dict(self) -> dict:
        return {"key": self.key, "total": self.total, "percentage": self.percentage}


@dataclass
class GroupSummary:
    group_by: str
    grand_total: float = 0.0
    invoice_count: int = 0
    groups: List[GroupTotal] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "group_by": self.group_by,
            "grand_total": self.grand_total,
            "invoice_count": self.invoice_count,
            "groups": [g.to_dict() for g in self.groups],
        }


def _key_function(group_by: str) -> Callable[[Invoice], str]:
    if group_by == "category":
        return lambda inv: inv.category_name or _FALLBACK_KEYS["category"]
    if group_by == "division":
        return lambda inv: inv.division_name or _FALLBACK_KEYS["division"]
    if group_by == "pic":
        return lambda inv: inv.pic_name or _FALLBACK_KEYS["pic"]
    if group_by == "month":
        return lambda inv: wib_date(inv.date).strftime("%Y-%m")
    raise ValueError(
        f"Unsupported group_by '{group_by}', expected one of {', '.join(GROUP_BY_FIELDS)}"
    )


def percentage_of(total: float, grand_total: float) -> float:
    if not grand_total:
        return 0.0
    return total / grand_total * 100


def group_totals(invoices: Sequence[Invoice], group_by: str) -> GroupSummary:
    """
    Sum total_amount per key. Groups keep encounter order; percentages are
    relative to the grand total of the same set and 0 for an empty set.
    """
    key_of = _key_function(group_by)
    totals: Dict[str, float] = {}
    for invoice in invoices:
        key = key_of(invoice)
        totals[key] = totals.get(key, 0.0) + invoice.total_amount
    grand_total = sum(inv.total_amount for inv in invoices)
    return GroupSummary(
        group_by=group_by,
        grand_total=grand_total,
        invoice_count=len(invoices),
        groups=[
            GroupTotal(key=k, total=v, percentage=percentage_of(v, grand_total))
            for k, v in totals.items()
        ],
    )


def daily_series(
    invoices: Sequence[Invoice], days: int = 7, today: Optional[date] = None
) -> List[dict]:
    """
    Totals per WIB calendar day for the trailing window ending today,
    oldest first. Days without invoices are reported as 0.
    """
    if days < 1:
        raise ValueError("days must be at least 1")
    end = today or now_wib().date()
    start = end - timedelta(days=days - 1)
    buckets: Dict[date, float] = {start + timedelta(days=i): 0.0 for i in range(days)}
    for invoice in invoices:
        day = wib_date(invoice.date)
        if day in buckets:
            buckets[day] += invoice.total_amount
    return [{"date": d.isoformat(), "total": total} for d, total in buckets.items()]
