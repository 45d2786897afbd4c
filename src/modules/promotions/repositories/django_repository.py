"""Django ORM implementations of the promotion repositories.

Usage counters are incremented with a single conditional ``UPDATE``
(``current_uses < max_uses``) so concurrent redemptions can never push a
counter past its cap.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db.models import F, Q

from modules.promotions.models import (
    CodeRedemption,
    Promotion,
    PromotionalCode,
    PromotionUsage,
)
from modules.promotions.repositories.interfaces import (
    IPromotionalCodeRepository,
    IPromotionRepository,
)

logger = structlog.get_logger(__name__)


def _capped_increment(queryset, id: str) -> bool:
    updated = (
        queryset.filter(id=id)
        .filter(Q(max_uses__isnull=True) | Q(current_uses__lt=F("max_uses")))
        .update(current_uses=F("current_uses") + 1)
    )
    return updated == 1


class PromotionDjangoRepository(IPromotionRepository):
    """Concrete Promotion repository backed by Django ORM."""

    def get_by_id(self, id: str) -> Optional[Promotion]:
        try:
            return Promotion.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def save(self, entity: Promotion) -> Promotion:
        entity.save()
        return entity

    def first_active(self, ids: Iterable[str], moment: datetime) -> Optional[Promotion]:
        ids = list(ids)
        if not ids:
            return None
        return (
            Promotion.objects.active_at(moment)
            .filter(id__in=ids)
            .order_by("created_at")
            .first()
        )

    def increment_usage(self, id: str) -> bool:
        return _capped_increment(Promotion.objects.all(), id)

    def count_user_usages(self, id: str, user_id: int) -> int:
        return PromotionUsage.objects.filter(promotion_id=id, user_id=user_id).count()

    def record_usage(self, id: str, order_id: Optional[str], user_id: Optional[int]) -> None:
        PromotionUsage.objects.create(promotion_id=id, order_id=order_id, user_id=user_id)

    def has_usages(self, id: str) -> bool:
        return PromotionUsage.objects.filter(promotion_id=id).exists()

    def disable(self, id: str) -> None:
        Promotion.objects.filter(id=id).update(is_active=False)
        logger.info("promotion.disabled", promotion_id=str(id))

    def delete(self, id: str) -> None:
        Promotion.objects.filter(id=id).delete()
        logger.info("promotion.deleted", promotion_id=str(id))


class PromotionalCodeDjangoRepository(IPromotionalCodeRepository):
    """Concrete PromotionalCode repository backed by Django ORM."""

    def get_by_id(self, id: str) -> Optional[PromotionalCode]:
        try:
            return PromotionalCode.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def save(self, entity: PromotionalCode) -> PromotionalCode:
        entity.save()
        return entity

    def get_by_code(self, code: str) -> Optional[PromotionalCode]:
        return PromotionalCode.objects.filter(code=PromotionalCode.normalize(code)).first()

    def is_user_allowed(self, code: PromotionalCode, user_id: Optional[int]) -> bool:
        allowed = code.allowed_users.all()
        if not allowed.exists():
            return True
        return user_id is not None and allowed.filter(pk=user_id).exists()

    def increment_usage(self, id: str) -> bool:
        return _capped_increment(PromotionalCode.objects.all(), id)

    def count_user_redemptions(self, id: str, user_id: int) -> int:
        return CodeRedemption.objects.filter(code_id=id, user_id=user_id).count()

    def create_redemption(
        self,
        code: PromotionalCode,
        user_id: Optional[int],
        order_id: Optional[str],
        discount_cents: int,
    ) -> CodeRedemption:
        return CodeRedemption.objects.create(
            code=code,
            user_id=user_id,
            order_id=order_id,
            discount_cents=discount_cents,
        )
