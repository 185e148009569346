"""Helper functions for document expiry calculations."""

from datetime import date, datetime
from typing import Optional, Tuple, Union

from dateutil.parser import isoparse

from .status import Status

EXPIRING_SOON_DAYS = 30

DateLike = Union[date, datetime, str, None]


def parse_expiry_date(value: DateLike) -> Optional[date]:
    """
    Parse an expiry date into a calendar date.

    Accepts None or "" (no expiry), a date, a datetime, or an ISO string in
    date or datetime form. Raises ValueError for anything else.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Invalid expiry date: {value!r}")
    value = value.strip()
    if not value:
        return None
    return isoparse(value).date()


def to_today(now: Union[date, datetime, None] = None) -> date:
    """Reduce a reference instant to a calendar date (today if None)."""
    if now is None:
        return date.today()
    if isinstance(now, datetime):
        return now.date()
    return now


def days_until_expiry(expiry: date, today: date) -> int:
    """Whole days from today until expiry; negative once expired."""
    return (expiry - today).days


def check_expiry(days: int, soon_days: int = EXPIRING_SOON_DAYS) -> Status:
    """Determine status from the remaining day count."""
    if days < 0:
        return Status.EXPIRED
    if days <= soon_days:
        return Status.EXPIRING
    return Status.VALID


def classify_expiry(
    expiry_date: DateLike,
    now: Union[date, datetime, None] = None,
    soon_days: int = EXPIRING_SOON_DAYS,
) -> Tuple[Status, Optional[int]]:
    """
    Classify an expiry date relative to now.

    Returns (Status.NONE, None) when no date is present, otherwise the
    status and the signed number of days until expiry.
    """
    expiry = parse_expiry_date(expiry_date)
    if expiry is None:
        return Status.NONE, None
    days = days_until_expiry(expiry, to_today(now))
    return check_expiry(days, soon_days), days
