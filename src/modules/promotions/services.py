"""Promotion Service Layer.

``PromotionalCodeService`` answers two different questions with the same
exclusivity predicate:

- ``validate_code`` (informational, used while the buyer types a code):
  a block only adds a warning, the code is still reported as usable.
- ``quote_code`` / ``redeem_code`` (enforcement, used at checkout commit):
  a block raises ``CodeBlockedByPromotion``.  This is the authoritative
  gate; the informational check must never be relied upon.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Iterable, List, Optional

import structlog
from django.db import transaction
from django.db.models import ProtectedError
from django.utils import timezone

from modules.promotions.discounts import compute_code_discount
from modules.promotions.dtos import (
    ApplyCodeDTO,
    CodeQuote,
    CodeValidationResult,
    ExclusivityResult,
    RetirementResult,
)
from modules.promotions.exceptions import (
    CodeBlockedByPromotion,
    CodeExpired,
    CodeInactive,
    CodeNotAllowedForUser,
    CodeNotFound,
    CodeUsageLimitReached,
    PromotionNotFound,
    PromotionUsageLimitReached,
)
from modules.promotions.exclusivity import ExclusivityResolver
from modules.promotions.models import Promotion, PromotionalCode
from modules.promotions.repositories.django_repository import (
    PromotionalCodeDjangoRepository,
    PromotionDjangoRepository,
)
from modules.promotions.repositories.interfaces import (
    IPromotionalCodeRepository,
    IPromotionRepository,
)

logger = structlog.get_logger(__name__)

EXCLUSIVITY_WARNING = (
    "The code will only apply to products without an active promotion or liquidation."
)


class PromotionalCodeService:
    def __init__(
        self,
        repository: Optional[IPromotionalCodeRepository] = None,
        resolver: Optional[ExclusivityResolver] = None,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self.repository = repository or PromotionalCodeDjangoRepository()
        self.resolver = resolver or ExclusivityResolver(clock=clock)
        self._clock = clock

    # ------------------------------------------------------------------
    # Informational
    # ------------------------------------------------------------------

    def check_availability(self, product_ids: Iterable) -> ExclusivityResult:
        """Whether a code could be applied to these products at all."""
        return self.resolver.resolve(product_ids)

    def validate_code(self, dto: ApplyCodeDTO) -> CodeValidationResult:
        code = self._get_usable_code(dto.code, dto.user_id)
        exclusivity = self.resolver.resolve(dto.product_ids)
        if not exclusivity.blocked:
            return CodeValidationResult.from_entity(code)

        blocked: List[str] = list(exclusivity.blocking_liquidation)
        if exclusivity.blocking_promotion is not None:
            blocked.append(exclusivity.blocking_promotion.name)
        logger.info(
            "promo_code.validated_with_warning",
            code=code.code,
            reason=exclusivity.reason,
        )
        return CodeValidationResult.from_entity(
            code,
            warning=EXCLUSIVITY_WARNING,
            blocked_products=blocked,
        )

    # ------------------------------------------------------------------
    # Enforcement
    # ------------------------------------------------------------------

    def quote_code(self, dto: ApplyCodeDTO) -> CodeQuote:
        """Authoritative check plus discount maths, without consuming a use."""
        code = self._enforce(dto)
        subtotal, discount = compute_code_discount(
            ((line.unit_price_cents, line.quantity) for line in dto.lines),
            code,
        )
        return CodeQuote(
            code_id=code.id,
            code=code.code,
            eligible_subtotal_cents=subtotal,
            discount_cents=discount,
        )

    @transaction.atomic
    def redeem_code(self, dto: ApplyCodeDTO, order_id: Optional[str] = None) -> CodeQuote:
        """Enforce, consume one use and record the redemption."""
        quote = self.quote_code(dto)
        code = self.repository.get_by_id(str(quote.code_id))

        if code.max_uses_per_user is not None and dto.user_id is not None:
            used = self.repository.count_user_redemptions(str(code.id), dto.user_id)
            if used >= code.max_uses_per_user:
                raise CodeUsageLimitReached(
                    f"You have already used code {code.code} the maximum number of times."
                )

        if not self.repository.increment_usage(str(code.id)):
            logger.warning("promo_code.usage_cap_reached", code=code.code)
            raise CodeUsageLimitReached(f"Code {code.code} has no uses left.")

        redemption = self.repository.create_redemption(
            code,
            user_id=dto.user_id,
            order_id=order_id,
            discount_cents=quote.discount_cents,
        )
        logger.info(
            "promo_code.redeemed",
            code=code.code,
            order_id=str(order_id) if order_id else None,
            discount_cents=quote.discount_cents,
        )
        return quote.model_copy(update={"redemption_id": redemption.id})

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _enforce(self, dto: ApplyCodeDTO) -> PromotionalCode:
        exclusivity = self.resolver.resolve(dto.product_ids)
        if exclusivity.blocked:
            logger.warning(
                "promo_code.blocked",
                code=dto.code,
                reason=exclusivity.reason,
            )
            raise CodeBlockedByPromotion(
                exclusivity.message or "The code cannot be applied to these products.",
                context=exclusivity.model_dump(mode="json"),
            )
        return self._get_usable_code(dto.code, dto.user_id)

    def _get_usable_code(self, raw_code: str, user_id: Optional[int]) -> PromotionalCode:
        code = self.repository.get_by_code(raw_code)
        if code is None:
            raise CodeNotFound(f"Promotional code {raw_code} does not exist.")
        if not code.is_active:
            raise CodeInactive(f"Promotional code {code.code} is not active.")

        now = self._clock()
        if code.starts_at and now < code.starts_at:
            raise CodeExpired(f"Promotional code {code.code} is not valid yet.")
        if code.ends_at and now > code.ends_at:
            raise CodeExpired(f"Promotional code {code.code} has expired.")
        if code.max_uses is not None and code.current_uses >= code.max_uses:
            raise CodeUsageLimitReached(f"Code {code.code} has no uses left.")
        if not self.repository.is_user_allowed(code, user_id):
            raise CodeNotAllowedForUser(f"Promotional code {code.code} is not available for you.")
        return code


class PromotionService:
    def __init__(
        self,
        repository: Optional[IPromotionRepository] = None,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self.repository = repository or PromotionDjangoRepository()
        self._clock = clock

    def get_running(self, promotion_id: Optional[str]) -> Optional[Promotion]:
        """The promotion if it is running now and still has uses left."""
        if not promotion_id:
            return None
        promotion = self.repository.get_by_id(str(promotion_id))
        if promotion is None or not promotion.is_running(self._clock()):
            return None
        if promotion.max_uses is not None and promotion.current_uses >= promotion.max_uses:
            return None
        return promotion

    @transaction.atomic
    def record_usage(
        self,
        promotion_id: str,
        order_id: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> None:
        promotion = self.repository.get_by_id(str(promotion_id))
        if promotion is None:
            raise PromotionNotFound(f"Promotion {promotion_id} does not exist.")

        if promotion.max_uses_per_user is not None and user_id is not None:
            if self.repository.count_user_usages(str(promotion.id), user_id) >= promotion.max_uses_per_user:
                raise PromotionUsageLimitReached(
                    f'You have already used promotion "{promotion.name}" the maximum number of times.'
                )

        if not self.repository.increment_usage(str(promotion.id)):
            logger.warning("promotion.usage_cap_reached", promotion_id=str(promotion.id))
            raise PromotionUsageLimitReached(f'Promotion "{promotion.name}" has no uses left.')

        self.repository.record_usage(str(promotion.id), order_id=order_id, user_id=user_id)
        logger.info(
            "promotion.usage_recorded",
            promotion_id=str(promotion.id),
            order_id=str(order_id) if order_id else None,
        )

    @transaction.atomic
    def retire_promotion(self, promotion_id: str) -> RetirementResult:
        """Delete an unused promotion; soft-disable one that has usages.

        An order line that starts referencing the promotion after the usage
        check still protects it from deletion, so retirement falls back to
        disabling it.
        """
        promotion = self.repository.get_by_id(str(promotion_id))
        if promotion is None:
            raise PromotionNotFound(f"Promotion {promotion_id} does not exist.")

        if self.repository.has_usages(str(promotion.id)):
            self.repository.disable(str(promotion.id))
            return RetirementResult(promotion_id=promotion.id, deleted=False, disabled=True)

        try:
            self.repository.delete(str(promotion.id))
        except ProtectedError:
            logger.warning("promotion.delete_protected", promotion_id=str(promotion.id))
            self.repository.disable(str(promotion.id))
            return RetirementResult(promotion_id=promotion.id, deleted=False, disabled=True)
        return RetirementResult(promotion_id=promotion.id, deleted=True, disabled=False)
