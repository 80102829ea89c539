"""Calendar arithmetic for plan expiration dates."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Union

from dateutil.relativedelta import relativedelta


def compute_expiration(start: datetime, months: int) -> datetime:
    """Return ``start`` shifted forward by ``months`` calendar months.

    The day of month is preserved when the target month has it; otherwise the
    result is clamped to the last day of the target month, so January 31st
    plus one month is February 28th (or 29th in leap years). Time of day and
    timezone are kept as-is.
    """

    if months < 0:
        raise ValueError("months must be >= 0")
    if months == 0:
        return start
    return start + relativedelta(months=months)


def parse_timestamp(value: Union[str, datetime]) -> datetime:
    """Parse an ISO-8601 timestamp, treating naive values as UTC."""

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    else:
        raise TypeError("Unsupported timestamp value")
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Render ``value`` as an ISO-8601 UTC string with a ``Z`` suffix."""

    normalized = value.astimezone(timezone.utc)
    return normalized.isoformat().replace("+00:00", "Z")
