"""Conversion between boto3's boxed ``Decimal`` numbers and plain Python numbers.

boto3 deserializes every DynamoDB number as :class:`decimal.Decimal` and refuses to
serialize ``float``. Values read from the store go through :func:`unwrap_numbers`;
values about to be written go through :func:`box_numbers`.
"""

from __future__ import annotations

import math
from datetime import date, time
from decimal import Decimal
from typing import Any

from .errors import ValidationError


def _plain_number(value: Decimal) -> int | float:
    if value.is_finite() and value == value.to_integral_value():
        return int(value)
    return float(value)


def unwrap_numbers(value: Any) -> Any:
    """Replace every ``Decimal`` leaf with ``int`` (integral) or ``float``.

    Lists and dicts are updated in place; the return value must still be used
    because a top-level ``Decimal`` (or set) is replaced rather than mutated.
    """
    if value is None or isinstance(value, (date, time)):
        return value
    if isinstance(value, Decimal):
        return _plain_number(value)
    if isinstance(value, list):
        for i, item in enumerate(value):
            value[i] = unwrap_numbers(item)
        return value
    if isinstance(value, dict):
        for key in value:
            value[key] = unwrap_numbers(value[key])
        return value
    if isinstance(value, (set, frozenset)):
        # number sets come back as set[Decimal]
        return type(value)(unwrap_numbers(v) for v in value)
    return value


def box_numbers(value: Any) -> Any:
    """Return a copy of ``value`` with every ``float`` converted to ``Decimal``."""
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValidationError(f"non-finite number cannot be stored: {value!r}")
        return Decimal(repr(value))
    if isinstance(value, dict):
        return {k: box_numbers(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [box_numbers(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return {box_numbers(v) for v in value}
    return value
