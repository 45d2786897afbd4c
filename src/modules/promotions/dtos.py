"""Promotion DTOs for the Service Layer (Pydantic v2, immutable)."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

if TYPE_CHECKING:
    from modules.promotions.models import Promotion, PromotionalCode


# ---------------------------------------------------------------------------
# Exclusivity
# ---------------------------------------------------------------------------


class BlockingPromotionDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    name: str
    ends_at: datetime

    @classmethod
    def from_entity(cls, promotion: Promotion) -> BlockingPromotionDTO:
        return cls(id=promotion.id, name=promotion.name, ends_at=promotion.ends_at)


class ExclusivityResult(BaseModel):
    """Outcome of the code exclusivity check for a set of products.

    ``blocking_liquidation`` lists the names of every liquidated product;
    ``blocking_promotion`` is the representative active promotion.
    """

    model_config = ConfigDict(frozen=True)

    blocked: bool
    reason: Optional[str] = None
    message: Optional[str] = None
    blocking_promotion: Optional[BlockingPromotionDTO] = None
    blocking_liquidation: List[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Promotional codes
# ---------------------------------------------------------------------------


class CodeLineDTO(BaseModel):
    """A cart line the code may discount (already priced, in cents)."""

    model_config = ConfigDict(frozen=True)

    unit_price_cents: int = Field(ge=0)
    quantity: int = Field(ge=1)


class ApplyCodeDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    product_ids: List[UUID] = Field(default_factory=list)
    user_id: Optional[int] = None
    lines: List[CodeLineDTO] = Field(default_factory=list)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("Code must not be empty.")
        return v


class CodeValidationResult(BaseModel):
    """Informational answer for a typed-in code."""

    model_config = ConfigDict(frozen=True)

    valid: bool
    code: str
    description: str
    discount_kind: Optional[str]
    discount_value: Optional[int]
    bundle_type: Optional[str]
    combinable: bool
    warning: Optional[str] = None
    blocked_products: List[str] = Field(default_factory=list)

    @classmethod
    def from_entity(
        cls,
        code: PromotionalCode,
        warning: Optional[str] = None,
        blocked_products: Optional[List[str]] = None,
    ) -> CodeValidationResult:
        return cls(
            valid=True,
            code=code.code,
            description=code.description,
            discount_kind=code.discount_kind,
            discount_value=code.discount_value,
            bundle_type=code.bundle_type,
            combinable=code.combinable,
            warning=warning,
            blocked_products=blocked_products or [],
        )


class CodeQuote(BaseModel):
    model_config = ConfigDict(frozen=True)

    code_id: UUID
    code: str
    eligible_subtotal_cents: int
    discount_cents: int
    redemption_id: Optional[UUID] = None


class RetirementResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    promotion_id: UUID
    deleted: bool
    disabled: bool
