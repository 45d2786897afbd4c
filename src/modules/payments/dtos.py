"""Payment DTOs for the Service Layer (Pydantic v2, immutable)."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from modules.payments.pricing import PriceQuote


class PriceQuoteRequestDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    gateway_id: str
    base_price_cents: int = Field(ge=0)
    product_id: Optional[UUID] = None
    category_id: Optional[UUID] = None


class AppliedRuleDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    description: str
    action: str
    amount_cents: int


class GatewayFeesDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    fixed_cents: int
    percent_cents: int
    total_cents: int


class PriceQuoteDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    gateway_id: UUID
    base_price_cents: int
    final_price_cents: int
    applied_rules: List[AppliedRuleDTO]
    gateway_fees: GatewayFeesDTO

    @classmethod
    def from_quote(cls, gateway_id: UUID, quote: PriceQuote) -> PriceQuoteDTO:
        return cls(
            gateway_id=gateway_id,
            base_price_cents=quote.base_price_cents,
            final_price_cents=quote.final_price_cents,
            applied_rules=[
                AppliedRuleDTO(
                    id=rule.id,
                    description=rule.description,
                    action=rule.action,
                    amount_cents=rule.amount_cents,
                )
                for rule in quote.applied_rules
            ],
            gateway_fees=GatewayFeesDTO(
                fixed_cents=quote.gateway_fees.fixed_cents,
                percent_cents=quote.gateway_fees.percent_cents,
                total_cents=quote.gateway_fees.total_cents,
            ),
        )
