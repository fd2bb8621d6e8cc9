"""
Helper Functions

This module contains utility functions used throughout the application.
"""

import os
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple, TypeVar

from dateutil import parser as dtparser

T = TypeVar("T")


def parse_ts(x: Any) -> Optional[datetime]:
    """Parse ISO-8601 timestamp, normalized to UTC"""
    if not x:
        return None
    try:
        dt = dtparser.isoparse(str(x))
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)
    except (ValueError, OverflowError):
        return None


def parse_epoch_ms(x: Any) -> Optional[datetime]:
    """Parse epoch milliseconds (JMeter's timeStamp column)"""
    try:
        return datetime.fromtimestamp(int(x) / 1000.0, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def safe_int(x: Any) -> Optional[int]:
    """Safely convert to int"""
    try:
        return int(x) if x is not None else None
    except (TypeError, ValueError, OverflowError):
        return None


def safe_float(x: Any) -> Optional[float]:
    """Safely convert to float"""
    try:
        return float(x) if x is not None else None
    except (TypeError, ValueError):
        return None


def get_nested(d: Dict[str, Any], path: Tuple[str, ...]) -> Any:
    """Safely read nested dict keys"""
    cur: Any = d
    for k in path:
        if not isinstance(cur, dict) or k not in cur:
            return None
        cur = cur[k]
    return cur


def first_present(d: Dict[str, Any], *paths: Tuple[str, ...]) -> Any:
    """Value of the first key path that is present and not None"""
    for path in paths:
        value = get_nested(d, path)
        if value is not None:
            return value
    return None


def nearest_rank(sorted_vals: Sequence[T], q: float) -> Optional[T]:
    """
    Nearest-rank percentile: the element at index floor(n * q).

    No interpolation. Returns None for an empty sequence.
    """
    if not sorted_vals:
        return None
    return sorted_vals[int(len(sorted_vals) * q)]


def round_two_decimals(value: float) -> float:
    """Round half-up to at most two decimal places"""
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def join_distinct(values: List[str]) -> str:
    """Comma-join distinct values keeping first-seen order"""
    return ",".join(dict.fromkeys(v for v in values if v))


def report_name(path: str, base_dir: Optional[str] = None) -> str:
    """Run name for a log file: path relative to base_dir with '/' separators, else the base name"""
    if base_dir is None:
        return os.path.basename(path)
    return os.path.relpath(path, base_dir).replace(os.sep, "/")
