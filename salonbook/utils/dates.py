import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional
from zoneinfo import ZoneInfo


def utcnow():
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime.datetime) -> datetime.datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(datetime.timezone.utc).replace(tzinfo=None)


def to_local_naive(value: datetime.datetime, tz_name: str) -> datetime.datetime:
    """Wall-clock time in ``tz_name``. Naive input is taken as already local."""
    if value.tzinfo is None:
        return value
    return value.astimezone(ZoneInfo(tz_name)).replace(tzinfo=None)


def parse_datetime(value, field_name: str) -> datetime.datetime:
    """
    Parse an ISO 8601 timestamp (a trailing "Z" is accepted) into naive UTC.
    Raises ValueError with a message naming the field.
    """
    if isinstance(value, datetime.datetime):
        return to_naive_utc(value)
    if not isinstance(value, str) or not value:
        raise ValueError(f"{field_name} is required")
    try:
        parsed = datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValueError(
            f"{field_name} must be in ISO format (YYYY-MM-DDTHH:MM:SS)"
        ) from None
    return to_naive_utc(parsed)


def parse_date(value, field_name: str) -> datetime.date:
    if isinstance(value, datetime.date) and not isinstance(value, datetime.datetime):
        return value
    try:
        return datetime.date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValueError(f"{field_name} must be a date (YYYY-MM-DD)") from None


def parse_time(value, field_name: str) -> datetime.time:
    if isinstance(value, datetime.time):
        return value
    try:
        return datetime.time.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValueError(f"{field_name} must be a time (HH:MM)") from None


def parse_decimal(value, field_name: str) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(f"{field_name} must be a valid number") from None


def isoformat_or_none(value) -> Optional[str]:
    return value.isoformat() if value else None


def money(value) -> Optional[float]:
    return float(value) if value is not None else None
