"""Exclusivity between promotional codes and product-level discounts.

A promotional code is blocked for a set of products when:

1. any product is in liquidation with a positive percentage (every such
   product is reported), or
2. any product takes part in a promotion that is running now
   (``starts_at <= now <= ends_at``, instant comparison).  The oldest
   running promotion is reported as the cause.

Every running promotion blocks every code.  ``exclusive_with_codes`` on
promotions and ``combinable`` / ``exclusive_with_promotions`` on codes are
stored but do not relax this rule.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Iterable, Optional

import structlog
from django.utils import timezone

from modules.products.repositories.django_repository import ProductDjangoRepository
from modules.products.repositories.interfaces import IProductRepository
from modules.promotions.constants import BlockReason
from modules.promotions.dtos import BlockingPromotionDTO, ExclusivityResult
from modules.promotions.repositories.django_repository import PromotionDjangoRepository
from modules.promotions.repositories.interfaces import IPromotionRepository

logger = structlog.get_logger(__name__)


class ExclusivityResolver:
    def __init__(
        self,
        product_repository: Optional[IProductRepository] = None,
        promotion_repository: Optional[IPromotionRepository] = None,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self._products = product_repository or ProductDjangoRepository()
        self._promotions = promotion_repository or PromotionDjangoRepository()
        self._clock = clock

    def resolve(self, product_ids: Iterable) -> ExclusivityResult:
        ids = [str(product_id) for product_id in product_ids]
        if not ids:
            return ExclusivityResult(blocked=False)

        products = self._products.list_for_exclusivity(ids)

        liquidated = [product.name for product in products if product.has_liquidation]
        if liquidated:
            logger.info("exclusivity.blocked_by_liquidation", products=liquidated)
            return ExclusivityResult(
                blocked=True,
                reason=BlockReason.LIQUIDATION,
                message=(
                    "Promotional codes cannot be combined with liquidation prices: "
                    + ", ".join(liquidated)
                ),
                blocking_liquidation=liquidated,
            )

        promotion_ids = {
            str(product.promotion_id)
            for product in products
            if product.applies_promotion and product.promotion_id
        }
        promotion = self._promotions.first_active(promotion_ids, self._clock())
        if promotion is not None:
            logger.info(
                "exclusivity.blocked_by_promotion",
                promotion_id=str(promotion.id),
            )
            return ExclusivityResult(
                blocked=True,
                reason=BlockReason.ACTIVE_PROMOTION,
                message=(
                    f'Promotional codes cannot be combined with the active promotion "{promotion.name}".'
                ),
                blocking_promotion=BlockingPromotionDTO.from_entity(promotion),
            )

        return ExclusivityResult(blocked=False)
