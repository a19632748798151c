"""Shared utilities for receipt normalization and aggregation.

This module provides small, dependency-light helpers used across the
ingest, filter and mart layers. It includes:

- Date parsing: strict ISO parsing and a lenient variant for vendor strings
- Numeric coercion: finite-number and quantity normalization
- Period keys: ``YYYY-MM`` month keys and ``YYYY`` year keys
- Discount lines: detection and target extraction

Examples:
    >>> from receipts_core.utils import month_key, extract_discount_target
    >>> month_key("2024-03-18")
    '2024-03'
    >>> extract_discount_target("/ 1234567")
    '1234567'

"""

from __future__ import annotations

import math
import re
from datetime import date, datetime
from typing import Any

import numpy as np
import pandas as pd

from receipts_core.constants import UNKNOWN, UNKNOWN_MONTH

MONTH_RE = re.compile(r"(\d{4})-(\d{2})")
DIGITS_RE = re.compile(r"(\d+)")


def parse_date(s: str) -> date:
    """Parse a date string in YYYY-MM-DD format.

    Args:
        s: Date string in ISO format (YYYY-MM-DD).

    Returns:
        Parsed date object.

    Raises:
        ValueError: If the date string is not in YYYY-MM-DD format.

    Examples:
        >>> parse_date("2023-01-15")
        datetime.date(2023, 1, 15)

    """
    return datetime.strptime(s, "%Y-%m-%d").date()


def to_date(value: Any) -> date | None:
    """Coerce a vendor date value into a date, or None when unparseable.

    Accepts ``date``/``datetime`` objects, ISO date strings and ISO
    datetime strings (``2024-01-15T10:31:00``).

    Examples:
        >>> to_date("2024-01-15T10:31:00")
        datetime.date(2024, 1, 15)
        >>> to_date("not a date") is None
        True

    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    # Plain ISO dates skip pandas, whose timestamps stop at 2262
    if len(text) == 10 or (len(text) > 10 and text[10] in "T "):
        try:
            return parse_date(text[:10])
        except ValueError:
            pass

    ts = pd.to_datetime(text, errors="coerce")
    if pd.isna(ts):
        return None
    return ts.date()


def safe_number(value: Any, fallback: float = 0.0) -> float:
    """Return value as a finite float, or fallback.

    Examples:
        >>> safe_number("12.50")
        12.5
        >>> safe_number(None)
        0.0
        >>> safe_number(float("nan"), fallback=-1.0)
        -1.0

    """
    if value is None:
        return fallback
    try:
        num = float(value)
    except (TypeError, ValueError):
        return fallback
    return num if math.isfinite(num) else fallback


def normalize_quantity(value: Any) -> float:
    """Return a usable quantity: the value when finite and non-zero, else 1.

    Negative quantities are kept; they mark returned units.
    """
    qty = safe_number(value, fallback=0.0)
    return qty if qty != 0 else 1.0


def month_key(value: Any) -> str:
    """Extract a ``YYYY-MM`` key from a date string, or ``'unknown'``."""
    if not isinstance(value, str) or not value:
        return UNKNOWN_MONTH
    m = MONTH_RE.search(value)
    return f"{m.group(1)}-{m.group(2)}" if m else UNKNOWN_MONTH


def year_key(value: Any) -> str:
    """Return the first four characters of a date string, or ``'Unknown'``.

    String slicing avoids any timezone shift from datetime parsing.
    """
    if not isinstance(value, str) or not value:
        return UNKNOWN
    return value[:4]


def is_discount_line(description: Any) -> bool:
    """True when an item description marks a discount (leading ``/``)."""
    if not isinstance(description, str):
        return False
    return description.strip().startswith("/")


def extract_discount_target(description: Any) -> str | None:
    """Return the numeric item id referenced by a discount description.

    Examples:
        >>> extract_discount_target("/1592844")
        '1592844'
        >>> extract_discount_target("/ COUPON") is None
        True

    """
    if not isinstance(description, str) or not description:
        return None
    m = DIGITS_RE.search(description.replace("/", "", 1).strip())
    return m.group(1) if m else None


def iso_or_none(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None


def to_jsonable(value: Any) -> Any:
    """Convert mart output into plain JSON types.

    Dates become ISO strings, numpy scalars become Python numbers, tuples
    and sets become lists. Dict keys are stringified.
    """
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, np.generic):
        return value.item()
    return value
