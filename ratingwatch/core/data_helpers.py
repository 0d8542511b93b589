"""
Centralized Data Conversion Helpers.

This module provides safe type conversion utilities used across the codebase.
All data conversion helpers should be imported from here to avoid duplication.

Usage:
    from ratingwatch.core.data_helpers import safe_decimal, parse_timestamp
"""

from __future__ import annotations

import asyncio
import re
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

import pandas as pd


INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

_INT_RE = re.compile(r"[+-]?[0-9]+")
_RFC3339_RE = re.compile(
    r"[0-9]{4}-[0-9]{2}-[0-9]{2}T[0-9]{2}:[0-9]{2}:[0-9]{2}(\.[0-9]+)?(Z|[+-][0-9]{2}:[0-9]{2})"
)


def safe_float(value: Any, default: float | None = None) -> float | None:
    """
    Safely convert value to float.

    Handles None, NaN, Inf, pandas NA/NaT, and conversion errors gracefully.

    Args:
        value: Any value to convert
        default: Default to return if conversion fails

    Returns:
        Float value or default if conversion fails
    """
    if value is None:
        return default
    try:
        if pd.isna(value):
            return default
    except (TypeError, ValueError):
        return default
    try:
        f = float(value)
        # Check for NaN and Inf
        if f != f or f == float('inf') or f == float('-inf'):
            return default
        return f
    except (ValueError, TypeError):
        return default


def safe_int(value: Any, default: int | None = None) -> int | None:
    """Strictly parse a signed 64-bit integer.

    "10.5", "1_000", "" and anything outside the int64 range give ``default``.
    """
    if value is None:
        return default
    text = str(value).strip()
    if not _INT_RE.fullmatch(text):
        return default
    parsed = int(text)
    if not INT64_MIN <= parsed <= INT64_MAX:
        return default
    return parsed


def safe_decimal(value: Any, default: Decimal | None = None) -> Decimal | None:
    """
    Safely convert value to a finite Decimal.

    Args:
        value: Any value to convert
        default: Default to return if conversion fails

    Returns:
        Decimal value or default for empty, malformed, NaN or infinite input
    """
    if value is None:
        return default
    try:
        d = Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        return default
    if not d.is_finite():
        return default
    return d


def parse_money(value: str | None) -> Decimal | None:
    """
    Parse a feed price target such as ``"$1,234.50"``.

    Empty input means "no target" and gives ``None``.

    Raises:
        ValueError: The value is not blank and not a finite number.
    """
    if value is None or not value.strip():
        return None
    cleaned = value.replace(",", "").strip()
    cleaned = cleaned.removeprefix("$")
    parsed = safe_decimal(cleaned)
    if parsed is None:
        raise ValueError(f"not a monetary amount: {value!r}")
    return parsed


def parse_timestamp(value: Any) -> pd.Timestamp | None:
    """
    Parse an RFC 3339 timestamp with nanosecond precision.

    The string must match ``YYYY-MM-DDTHH:MM:SS[.fraction](Z|+hh:mm)``.
    Anything else, including naive or space-separated timestamps, gives ``None``.

    Returns:
        UTC ``pd.Timestamp`` or None
    """
    if not isinstance(value, str) or not _RFC3339_RE.fullmatch(value.strip()):
        return None
    try:
        ts = pd.Timestamp(value.strip())
    except (ValueError, TypeError, OverflowError):
        return None
    if ts is pd.NaT or ts.tzinfo is None:
        return None
    return ts.tz_convert("UTC")


def split_timestamp(ts: pd.Timestamp) -> tuple[datetime, int]:
    """Split a timestamp into a microsecond ``datetime`` and the 0-999 ns remainder."""
    return ts.to_pydatetime(warn=False), ts.nanosecond


def format_timestamp(value: datetime, nanos: int = 0) -> str:
    """
    Format a timestamp as UTC ISO-8601 with exactly nine fractional digits.

    Examples:
        >>> format_timestamp(datetime(2025, 1, 13, 0, 30, 5, 813548, tzinfo=timezone.utc), 892)
        '2025-01-13T00:30:05.813548892Z'
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    fraction = value.microsecond * 1000 + (nanos or 0)
    return f"{value.strftime('%Y-%m-%dT%H:%M:%S')}.{fraction:09d}Z"


def format_money(value: Decimal | float | None) -> str:
    """Render a nullable price target for the API; absent targets become ``""``."""
    if value is None:
        return ""
    if isinstance(value, Decimal):
        return f"{value:f}"
    return str(value)


async def run_in_executor(func: Any, *args: Any) -> Any:
    """
    Run a blocking function in the default thread pool.

    Use this to wrap blocking I/O calls (like yfinance) in async code.

    Args:
        func: Blocking function to run
        *args: Arguments to pass to the function

    Returns:
        Result of the function call
    """
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, func, *args)


__all__ = [
    "safe_float",
    "safe_int",
    "safe_decimal",
    "parse_money",
    "parse_timestamp",
    "split_timestamp",
    "format_timestamp",
    "format_money",
    "run_in_executor",
]
