"""Numeric coercion, clamping and display formatting helpers."""

from __future__ import annotations

import math
import re
from typing import Any

# Currency symbols, thousands separators, units ... everything but the number.
_NON_NUMERIC_RE = re.compile(r"[^0-9.\-]+")
_LEADING_FLOAT_RE = re.compile(r"^-?(?:\d+\.?\d*|\.\d+)")
_DIGIT_RE = re.compile(r"\d")


def parse_numeric(value: Any) -> float:
    """Coerce an arbitrary widget value to a finite float.

    ``None``, ``""`` and anything unparsable read as 0; booleans read as 1/0;
    strings are stripped of everything but digits, ``.`` and ``-`` first, so
    ``"$1,250.50"`` reads as 1250.5.  The longest leading number wins, as with
    ``"12-3"`` -> 12.
    """
    if value is None or value == "":
        return 0.0
    if value is True:
        return 1.0
    if value is False:
        return 0.0
    if isinstance(value, str):
        clean = _NON_NUMERIC_RE.sub("", value)
        m = _LEADING_FLOAT_RE.match(clean)
        if m is None:
            return 0.0
        num = float(m.group())
    else:
        try:
            num = float(value)
        except (TypeError, ValueError):
            return 0.0
    return num if math.isfinite(num) else 0.0


def optional_number(value: Any) -> float | None:
    """Like :func:`parse_numeric`, but ``None`` when *value* holds no number.

    Used for optional settings such as bounds, where a missing or garbled
    attribute means "not set" rather than 0.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        if not _DIGIT_RE.search(value):
            return None
        return parse_numeric(value)
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    return num if math.isfinite(num) else None


def clamp(value: float, minimum: float | None = None, maximum: float | None = None) -> float:
    """Apply optional bounds; the maximum wins when the bounds cross."""
    result = value
    if minimum is not None and not math.isnan(minimum):
        result = max(result, minimum)
    if maximum is not None and not math.isnan(maximum):
        result = min(result, maximum)
    return result


def format_number(value: float, decimals: int = 2, use_grouping: bool = True) -> str:
    """Fixed-point text for display, e.g. ``format_number(1234.5) == "1,234.50"``."""
    spec = f",.{decimals}f" if use_grouping else f".{decimals}f"
    return format(value, spec)
