"""Discount arithmetic for cart lines and promotional codes.

Pure functions over integer cents; no database access.  Percentages and
averages are rounded half away from zero at each step.

Line layering (highest priority first):

1. liquidation percentage on the product,
2. the product's active promotion (percentage, fixed amount, or bundle),
3. no discount.

A line that carries its own discount is never discounted again by a code.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional, Protocol, Tuple
from uuid import UUID

from modules.promotions.constants import (
    BUNDLE_TERMS,
    CodeDiscountKind,
    DiscountSource,
    DiscountType,
)
from shared.domain.money import percent_of, round_half_up


class PromotionTerms(Protocol):
    id: UUID
    discount_type: str
    discount_value: int
    bundle_type: Optional[str]


class CodeTerms(Protocol):
    discount_kind: Optional[str]
    discount_value: Optional[int]
    bundle_type: Optional[str]
    combinable: bool


@dataclass(frozen=True)
class LineDiscount:
    original_unit_price_cents: int
    unit_price_cents: int
    source: str = DiscountSource.NONE
    promotion_id: Optional[UUID] = None

    @property
    def discount_cents(self) -> int:
        return self.original_unit_price_cents - self.unit_price_cents

    @property
    def has_discount(self) -> bool:
        return self.discount_cents > 0


def bundle_paid_units(quantity: int, bundle_type: str) -> int:
    """Units actually paid for ``quantity`` units under a take-N-pay-M deal."""
    take, pay = BUNDLE_TERMS[bundle_type]
    return (quantity // take) * pay + quantity % take


def resolve_line_discount(
    price_cents: int,
    quantity: int,
    liquidation_percent: int = 0,
    promotion: Optional[PromotionTerms] = None,
) -> LineDiscount:
    """Price one cart line.

    ``promotion`` must already be known to be running; the caller decides
    that (window, active flag, remaining uses).
    """
    if liquidation_percent > 0:
        discount = min(percent_of(price_cents, liquidation_percent), price_cents)
        return LineDiscount(
            original_unit_price_cents=price_cents,
            unit_price_cents=price_cents - discount,
            source=DiscountSource.LIQUIDATION,
        )

    if promotion is not None:
        discount = _promotion_unit_discount(price_cents, quantity, promotion)
        if discount > 0:
            return LineDiscount(
                original_unit_price_cents=price_cents,
                unit_price_cents=price_cents - discount,
                source=DiscountSource.PROMOTION,
                promotion_id=promotion.id,
            )

    return LineDiscount(original_unit_price_cents=price_cents, unit_price_cents=price_cents)


def _promotion_unit_discount(price_cents: int, quantity: int, promotion: PromotionTerms) -> int:
    if promotion.discount_type == DiscountType.PERCENTAGE:
        return min(percent_of(price_cents, promotion.discount_value), price_cents)
    if promotion.discount_type == DiscountType.FIXED_AMOUNT:
        return min(promotion.discount_value, price_cents)
    if promotion.discount_type == DiscountType.BUNDLE and promotion.bundle_type:
        paid = bundle_paid_units(quantity, promotion.bundle_type)
        if paid >= quantity:
            return 0
        # Spread the free units over the line: unit price is the average paid.
        average = round_half_up(Decimal(paid * price_cents) / Decimal(quantity))
        return price_cents - average
    return 0


def compute_code_discount(
    lines: Iterable[Tuple[int, int]],
    code: CodeTerms,
) -> Tuple[int, int]:
    """Return ``(eligible_subtotal, discount)`` in cents for a code.

    ``lines`` are ``(unit_price_cents, quantity)`` pairs of the lines the
    code may touch.  Bundles are computed on the average eligible unit
    price.  When a code has both a discount and a bundle, a combinable code
    stacks the discount on the post-bundle subtotal; otherwise the larger
    of the two wins.  The result never exceeds the eligible subtotal.
    """
    lines = list(lines)
    subtotal = sum(price * qty for price, qty in lines)
    units = sum(qty for _, qty in lines)
    if subtotal <= 0 or units <= 0:
        return subtotal, 0

    bundle_discount = 0
    if code.bundle_type:
        paid = bundle_paid_units(units, code.bundle_type)
        free_units = units - paid
        bundle_discount = round_half_up(Decimal(subtotal) * free_units / units)

    if code.bundle_type and _has_code_discount(code):
        if code.combinable:
            remaining = subtotal - bundle_discount
            discount = bundle_discount + _code_discount(remaining, code)
        else:
            discount = max(bundle_discount, _code_discount(subtotal, code))
    elif code.bundle_type:
        discount = bundle_discount
    else:
        discount = _code_discount(subtotal, code)

    return subtotal, max(0, min(discount, subtotal))


def _has_code_discount(code: CodeTerms) -> bool:
    return bool(code.discount_kind and code.discount_value)


def _code_discount(amount_cents: int, code: CodeTerms) -> int:
    if not _has_code_discount(code) or amount_cents <= 0:
        return 0
    if code.discount_kind == CodeDiscountKind.PERCENTAGE:
        return percent_of(amount_cents, code.discount_value)
    return min(code.discount_value, amount_cents)
