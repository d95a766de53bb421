from __future__ import annotations

import math
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from ..models.fields import FieldDescriptor

"""Canonical text form of cell and column values.

Stored values and incoming source values are compared through
``normalize_value`` on both sides, so ``1001``, ``1001.0`` and ``"1001"`` are
equal while ``"Kyiv"`` and ``"kyiv"`` are not.

Rules:
- None, NaN and blank strings -> None
- bool -> "1" / "0"
- int -> decimal text; integral float/Decimal -> integer text; other floats -> str()
- date/datetime -> ISO-8601
- str -> stripped
- anything else -> str()
"""

__all__ = [
    "normalize_value",
    "normalize_field_value",
    "values_equal",
]


def normalize_value(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value):
            return None
        if value.is_integer():
            return str(int(value))
        return str(value)
    if isinstance(value, Decimal):
        if value.is_nan():
            return None
        if value == value.to_integral_value():
            return str(int(value))
        return str(value.normalize())
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    text = str(value).strip()
    return text or None


def normalize_field_value(descriptor: FieldDescriptor, value: Any) -> str | None:
    """Normalize ``value`` for a scalar column, zero-padding numeric codes."""
    text = normalize_value(value)
    width = descriptor.pad_width
    if text is not None and width and text.isdigit() and len(text) < width:
        text = text.zfill(width)
    return text


def values_equal(left: Any, right: Any) -> bool:
    return normalize_value(left) == normalize_value(right)
