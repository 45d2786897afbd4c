"""Integer minor-unit (cents) arithmetic helpers."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

Number = Union[int, Decimal, str]


def round_half_up(value: Decimal) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(Decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percent_of(amount_cents: int, percent: Number) -> int:
    """Return ``amount_cents * percent / 100`` rounded half away from zero."""
    return round_half_up(Decimal(amount_cents) * Decimal(str(percent)) / Decimal(100))
