"""Gateway Pricing Engine.

``calculate_final_price`` is pure: it takes the gateway fee schedule and
its active rules and works on integer cents.

1. Keep rules whose scope matches the context: PRODUCT on ``product_id``,
   CATEGORY on ``category_id``, GLOBAL only when it has no target id.
2. Apply them product first, then category, then global; inside a scope by
   descending priority.  DISCOUNT subtracts, CHARGE adds, either the fixed
   amount or ``round(running * percent / 100)`` of the running price.
3. Add the gateway fee (fixed + percentage of the running price).
4. Clamp the final price at zero.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence

from modules.payments.constants import SCOPE_SPECIFICITY, RuleAction, RuleScope
from shared.domain.money import percent_of


@dataclass(frozen=True)
class PriceRule:
    id: str
    scope: str
    action: str
    scope_id: Optional[str] = None
    amount_cents: Optional[int] = None
    percent: Optional[Decimal] = None
    priority: int = 0
    description: str = ""


@dataclass(frozen=True)
class AppliedRule:
    id: str
    description: str
    action: str
    # Signed: negative for discounts.
    amount_cents: int


@dataclass(frozen=True)
class GatewayFees:
    fixed_cents: int
    percent_cents: int

    @property
    def total_cents(self) -> int:
        return self.fixed_cents + self.percent_cents


@dataclass(frozen=True)
class PriceQuote:
    base_price_cents: int
    final_price_cents: int
    gateway_fees: GatewayFees
    applied_rules: List[AppliedRule] = field(default_factory=list)


def matches_scope(
    rule: PriceRule,
    product_id: Optional[str] = None,
    category_id: Optional[str] = None,
) -> bool:
    if rule.scope == RuleScope.PRODUCT:
        return rule.scope_id is not None and product_id is not None and rule.scope_id == product_id
    if rule.scope == RuleScope.CATEGORY:
        return rule.scope_id is not None and category_id is not None and rule.scope_id == category_id
    if rule.scope == RuleScope.GLOBAL:
        return not rule.scope_id
    return False


def order_rules(rules: Iterable[PriceRule]) -> List[PriceRule]:
    return sorted(rules, key=lambda rule: (SCOPE_SPECIFICITY[rule.scope], -rule.priority))


def rule_amount(rule: PriceRule, running_cents: int) -> int:
    if rule.amount_cents:
        return rule.amount_cents
    if rule.percent:
        return percent_of(running_cents, rule.percent)
    return 0


def _describe(rule: PriceRule) -> str:
    if rule.description:
        return rule.description
    label = "Discount" if rule.action == RuleAction.DISCOUNT else "Charge"
    if rule.amount_cents:
        return f"{label}: {rule.amount_cents} cents"
    return f"{label}: {rule.percent}%"


def calculate_final_price(
    base_price_cents: int,
    rules: Sequence[PriceRule],
    fees_fixed_cents: int = 0,
    fees_percent: Decimal = Decimal("0"),
    product_id: Optional[str] = None,
    category_id: Optional[str] = None,
) -> PriceQuote:
    running = base_price_cents
    applied: List[AppliedRule] = []

    matching = [rule for rule in rules if matches_scope(rule, product_id, category_id)]
    for rule in order_rules(matching):
        amount = rule_amount(rule, running)
        if rule.action == RuleAction.DISCOUNT:
            running -= amount
            signed = -amount
        elif rule.action == RuleAction.CHARGE:
            running += amount
            signed = amount
        else:
            continue
        applied.append(
            AppliedRule(
                id=rule.id,
                description=_describe(rule),
                action=rule.action,
                amount_cents=signed,
            )
        )

    fees = GatewayFees(
        fixed_cents=fees_fixed_cents,
        percent_cents=percent_of(running, fees_percent) if fees_percent else 0,
    )
    running += fees.total_cents

    return PriceQuote(
        base_price_cents=base_price_cents,
        final_price_cents=max(0, running),
        gateway_fees=fees,
        applied_rules=applied,
    )
