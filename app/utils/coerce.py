"""Lenient coercion of backend values.

A single malformed row must not abort aggregation of the rest of the dataset,
so these helpers never raise: unparseable dates become ``None`` and
non-numeric values become ``0.0``.
"""
import math
from datetime import datetime
from typing import Any, Optional

import pandas as pd


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a backend timestamp into a timezone-aware UTC datetime.

    Naive values are assumed to be UTC.

    Examples:
        >>> parse_timestamp("2024-01-03")
        datetime.datetime(2024, 1, 3, 0, 0, tzinfo=datetime.timezone.utc)
        >>> parse_timestamp("not a date") is None
        True
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str) and not value.strip():
        return None

    try:
        ts = pd.to_datetime(value, utc=True, errors="coerce")
    except (TypeError, ValueError, OverflowError):
        return None

    # NaT, or a non-scalar result (e.g. from a mapping)
    if not isinstance(ts, pd.Timestamp):
        return None
    return ts.to_pydatetime()


def coerce_number(value: Any, default: float = 0.0) -> float:
    """Convert a value to a finite float, falling back to ``default``."""
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def format_date(value: Optional[datetime], fmt: str = "%Y-%m-%d") -> str:
    """Format a date for display, dash if missing."""
    if value is None:
        return "-"
    return value.strftime(fmt)
