from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union

# Western Indonesian Time. Every stored invoice date is WIB wall-clock time.
WIB = timezone(timedelta(hours=7), name="WIB")


def now_wib() -> datetime:
    return datetime.now(WIB)


def to_wib_naive(value: Optional[datetime]) -> datetime:
    """
    Normalize a datetime for storage.
    Aware values are converted to UTC+7, naive values are taken as WIB already,
    a missing value means "now".
    """
    if value is None:
        return now_wib().replace(tzinfo=None)
    if value.tzinfo is not None:
        return value.astimezone(WIB).replace(tzinfo=None)
    return value


def from_wib_naive(value: datetime) -> datetime:
    return value.replace(tzinfo=WIB)


def normalize_bound(
    value: Optional[Union[datetime, date]], end_of_day: bool = False
) -> Optional[datetime]:
    """
    Normalize a filter bound the same way stored dates are normalized.
    A bare date covers the whole day when used as an upper bound.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_wib_naive(value)
    return datetime.combine(value, time.max if end_of_day else time.min)


def wib_date(value: datetime) -> date:
    if value.tzinfo is not None:
        value = value.astimezone(WIB)
    return value.date()
