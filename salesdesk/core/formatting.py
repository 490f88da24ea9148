"""Helpers for month keys and money values shared by the engine and the API."""
from __future__ import annotations

import re
from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable

from dateutil.relativedelta import relativedelta

MONTH_KEY_FORMAT = "%Y-%m"
MONTH_KEY_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}")
MONEY_QUANT = Decimal("0.01")

_STRING_PARSE_PATTERNS: Iterable[str] = (
    "%Y-%m-%d",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d %H:%M:%S",
)


def _coerce_to_datetime(value: Any) -> datetime | None:
    """Attempt to normalise incoming date-like values to a datetime."""
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            if text.endswith("Z"):
                try:
                    return datetime.fromisoformat(text.replace("Z", "+00:00"))
                except ValueError:
                    pass
            for pattern in _STRING_PARSE_PATTERNS:
                try:
                    return datetime.strptime(text, pattern)
                except ValueError:
                    continue
        return None
    return None


def month_key(value: Any = None) -> str:
    """Return the ``YYYY-MM`` key for a date-like value (today when omitted)."""
    coerced = _coerce_to_datetime(value) if value is not None else datetime.now()
    if coerced is None:
        raise ValueError(f"Cannot derive a month key from {value!r}")
    return coerced.strftime(MONTH_KEY_FORMAT)


def is_month_key(value: str | None) -> bool:
    if not value or MONTH_KEY_PATTERN.fullmatch(value) is None:
        return False
    return 1 <= int(value[5:]) <= 12


def month_bounds(key: str | None = None) -> tuple[date, date]:
    """Return the first and last day of the month named by ``key``.

    Only the shape of the key is checked here; callers that surface errors to
    users validate with :func:`is_month_key` first.
    """
    if key is None:
        today = date.today()
        start = today.replace(day=1)
    else:
        year, month = (int(part) for part in key.split("-"))
        start = date(year, month, 1)
    end = start + relativedelta(months=1) - relativedelta(days=1)
    return start, end


def previous_month_key(key: str) -> str:
    start, _ = month_bounds(key)
    return (start - relativedelta(months=1)).strftime(MONTH_KEY_FORMAT)


def to_money(value: Any) -> Decimal:
    """Coerce a numeric value into a cent-rounded Decimal (0 for blanks)."""
    if value in (None, ""):
        return Decimal("0.00")
    try:
        decimal_value = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(f"Not a monetary amount: {value!r}") from None
    return decimal_value.quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


__all__ = [
    "MONEY_QUANT",
    "is_month_key",
    "month_bounds",
    "month_key",
    "previous_month_key",
    "to_money",
]
