"""Payment gateway Service Layer."""

from __future__ import annotations

from typing import Optional

import structlog

from modules.payments.dtos import PriceQuoteDTO, PriceQuoteRequestDTO
from modules.payments.exceptions import GatewayNotFound
from modules.payments.models import GatewayPriceRule
from modules.payments.pricing import PriceRule, calculate_final_price
from modules.payments.repositories.django_repository import PaymentGatewayDjangoRepository
from modules.payments.repositories.interfaces import IPaymentGatewayRepository

logger = structlog.get_logger(__name__)


def _to_price_rule(rule: GatewayPriceRule) -> PriceRule:
    return PriceRule(
        id=str(rule.id),
        scope=rule.scope,
        action=rule.action,
        scope_id=str(rule.scope_id) if rule.scope_id else None,
        amount_cents=rule.amount_cents,
        percent=rule.percent,
        priority=rule.priority,
        description=rule.description,
    )


class PaymentGatewayService:
    def __init__(self, repository: Optional[IPaymentGatewayRepository] = None) -> None:
        self.repository = repository or PaymentGatewayDjangoRepository()

    def calculate_final_price(self, dto: PriceQuoteRequestDTO) -> PriceQuoteDTO:
        gateway = self.repository.get_by_id(str(dto.gateway_id))
        if gateway is None:
            raise GatewayNotFound(f"Payment gateway {dto.gateway_id} does not exist.")

        rules = [_to_price_rule(rule) for rule in self.repository.active_rules(gateway)]
        quote = calculate_final_price(
            dto.base_price_cents,
            rules,
            fees_fixed_cents=gateway.fees_fixed_cents,
            fees_percent=gateway.fees_percent,
            product_id=str(dto.product_id) if dto.product_id else None,
            category_id=str(dto.category_id) if dto.category_id else None,
        )
        logger.info(
            "gateway.price_calculated",
            gateway_id=str(gateway.id),
            base_price_cents=quote.base_price_cents,
            final_price_cents=quote.final_price_cents,
            applied_rules=len(quote.applied_rules),
        )
        return PriceQuoteDTO.from_quote(gateway.id, quote)
