"""Integration tests for PromotionalCodeService and PromotionService."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import patch
from uuid import uuid4

import pytest
from django.contrib.auth import get_user_model
from django.utils import timezone

from modules.orders.dtos import CreateOrderLineDTO
from modules.promotions.constants import BlockReason, BundleType
from modules.promotions.dtos import ApplyCodeDTO, CodeLineDTO
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
from modules.promotions.models import CodeRedemption, Promotion, PromotionUsage
from modules.promotions.services import (
    EXCLUSIVITY_WARNING,
    PromotionalCodeService,
    PromotionService,
)
from shared.domain.exceptions import ForbiddenError

pytestmark = pytest.mark.integration


@pytest.fixture()
def service():
    return PromotionalCodeService()


@pytest.fixture()
def promoted_product(make_product, make_promotion):
    promotion = make_promotion(name="Hot Sale")
    return make_product(name="Buzo", applies_promotion=True, promotion=promotion)


class TestValidateCode:
    def test_usable_code(self, service, make_code, product):
        make_code()

        result = service.validate_code(ApplyCodeDTO(code=" welcome10 ", product_ids=[product.id]))

        assert result.valid is True
        assert result.code == "WELCOME10"
        assert result.warning is None

    def test_blocked_cart_only_warns(self, service, make_code, promoted_product):
        make_code()

        result = service.validate_code(
            ApplyCodeDTO(code="WELCOME10", product_ids=[promoted_product.id])
        )

        assert result.valid is True
        assert result.warning == EXCLUSIVITY_WARNING
        assert result.blocked_products == ["Hot Sale"]

    def test_liquidated_products_listed(self, service, make_code, make_product):
        make_code()
        product = make_product(name="Campera", in_liquidation=True, liquidation_percent=40)

        result = service.validate_code(ApplyCodeDTO(code="WELCOME10", product_ids=[product.id]))

        assert result.blocked_products == ["Campera"]

    def test_unknown_code(self, service):
        with pytest.raises(CodeNotFound):
            service.validate_code(ApplyCodeDTO(code="NOPE"))

    def test_inactive_code(self, service, make_code):
        make_code(is_active=False)

        with pytest.raises(CodeInactive):
            service.validate_code(ApplyCodeDTO(code="WELCOME10"))

    def test_expired_code(self, service, make_code):
        now = timezone.now()
        make_code(starts_at=now - timedelta(days=2), ends_at=now - timedelta(hours=1))

        with pytest.raises(CodeExpired, match="expired"):
            service.validate_code(ApplyCodeDTO(code="WELCOME10"))

    def test_code_not_started(self, service, make_code):
        make_code(starts_at=timezone.now() + timedelta(days=1))

        with pytest.raises(CodeExpired, match="not valid yet"):
            service.validate_code(ApplyCodeDTO(code="WELCOME10"))

    def test_used_up_code(self, service, make_code):
        make_code(max_uses=3, current_uses=3)

        with pytest.raises(CodeUsageLimitReached):
            service.validate_code(ApplyCodeDTO(code="WELCOME10"))

    def test_allow_list(self, service, make_code, buyer):
        other = get_user_model().objects.create_user(username="other", password="x")
        code = make_code()
        code.allowed_users.add(other)

        with pytest.raises(CodeNotAllowedForUser):
            service.validate_code(ApplyCodeDTO(code="WELCOME10", user_id=buyer.id))
        assert service.validate_code(ApplyCodeDTO(code="WELCOME10", user_id=other.id)).valid


class TestQuoteCode:
    def test_quote_computes_discount(self, service, make_code, product):
        make_code()

        quote = service.quote_code(
            ApplyCodeDTO(
                code="WELCOME10",
                product_ids=[product.id],
                lines=[CodeLineDTO(unit_price_cents=5000, quantity=2)],
            )
        )

        assert quote.eligible_subtotal_cents == 10000
        assert quote.discount_cents == 1000
        assert quote.redemption_id is None

    def test_bundle_code(self, service, make_code):
        make_code(code="LLEVA2", discount_kind=None, discount_value=None, bundle_type=BundleType.TWO_FOR_ONE)

        quote = service.quote_code(
            ApplyCodeDTO(code="lleva2", lines=[CodeLineDTO(unit_price_cents=3000, quantity=2)])
        )

        assert quote.discount_cents == 3000

    def test_blocked_cart_is_refused(self, service, make_code, promoted_product):
        make_code()

        with pytest.raises(CodeBlockedByPromotion) as exc_info:
            service.quote_code(ApplyCodeDTO(code="WELCOME10", product_ids=[promoted_product.id]))

        assert isinstance(exc_info.value, ForbiddenError)
        assert exc_info.value.context["reason"] == BlockReason.ACTIVE_PROMOTION
        assert exc_info.value.context["blocking_promotion"]["name"] == "Hot Sale"

    def test_block_checked_before_code_exists(self, service, promoted_product):
        with pytest.raises(CodeBlockedByPromotion):
            service.quote_code(ApplyCodeDTO(code="MISSING", product_ids=[promoted_product.id]))


class TestRedeemCode:
    def test_redeem_consumes_a_use(self, service, make_code, buyer):
        code = make_code(max_uses=5)

        quote = service.redeem_code(
            ApplyCodeDTO(
                code="WELCOME10",
                user_id=buyer.id,
                lines=[CodeLineDTO(unit_price_cents=2000, quantity=1)],
            )
        )

        code.refresh_from_db()
        assert code.current_uses == 1
        redemption = CodeRedemption.objects.get(id=quote.redemption_id)
        assert redemption.user_id == buyer.id
        assert redemption.discount_cents == 200

    def test_global_cap(self, service, make_code):
        make_code(max_uses=1)
        dto = ApplyCodeDTO(code="WELCOME10", lines=[CodeLineDTO(unit_price_cents=2000, quantity=1)])

        service.redeem_code(dto)
        with pytest.raises(CodeUsageLimitReached):
            service.redeem_code(dto)

        assert CodeRedemption.objects.count() == 1

    def test_per_user_cap(self, service, make_code, buyer):
        make_code(max_uses_per_user=1)
        dto = ApplyCodeDTO(code="WELCOME10", user_id=buyer.id)

        service.redeem_code(dto)
        with pytest.raises(CodeUsageLimitReached, match="maximum number of times"):
            service.redeem_code(dto)

    def test_blocked_redeem_consumes_nothing(self, service, make_code, promoted_product):
        code = make_code()

        with pytest.raises(CodeBlockedByPromotion):
            service.redeem_code(ApplyCodeDTO(code="WELCOME10", product_ids=[promoted_product.id]))

        code.refresh_from_db()
        assert code.current_uses == 0


class TestPromotionService:
    def test_get_running(self, make_promotion):
        promotion = make_promotion()

        assert PromotionService().get_running(str(promotion.id)) == promotion
        assert PromotionService().get_running(None) is None

    def test_get_running_skips_used_up_promotion(self, make_promotion):
        promotion = make_promotion(max_uses=2, current_uses=2)

        assert PromotionService().get_running(str(promotion.id)) is None

    def test_record_usage_respects_cap(self, make_promotion):
        promotion = make_promotion(max_uses=1)
        service = PromotionService()

        service.record_usage(str(promotion.id))
        with pytest.raises(PromotionUsageLimitReached):
            service.record_usage(str(promotion.id))

        promotion.refresh_from_db()
        assert promotion.current_uses == 1
        assert PromotionUsage.objects.filter(promotion=promotion).count() == 1

    def test_record_usage_per_user_cap(self, make_promotion, buyer):
        promotion = make_promotion(max_uses_per_user=1)
        service = PromotionService()

        service.record_usage(str(promotion.id), user_id=buyer.id)
        with pytest.raises(PromotionUsageLimitReached):
            service.record_usage(str(promotion.id), user_id=buyer.id)

    def test_record_usage_unknown_promotion(self):
        with pytest.raises(PromotionNotFound):
            PromotionService().record_usage(str(uuid4()))

    def test_retire_unused_promotion_deletes_it(self, make_promotion):
        promotion = make_promotion()

        result = PromotionService().retire_promotion(str(promotion.id))

        assert result.deleted is True
        assert not Promotion.objects.filter(id=promotion.id).exists()

    def test_retire_used_promotion_disables_it(self, make_promotion):
        promotion = make_promotion()
        service = PromotionService()
        service.record_usage(str(promotion.id))

        result = service.retire_promotion(str(promotion.id))

        promotion.refresh_from_db()
        assert result.disabled is True
        assert result.deleted is False
        assert promotion.is_active is False

    def test_retire_falls_back_to_disable_when_order_line_references_it(
        self, make_promotion, make_product, make_order
    ):
        promotion = make_promotion()
        promoted = make_product(applies_promotion=True, promotion=promotion)
        make_order(lines=[CreateOrderLineDTO(product_id=promoted.id, quantity=1)])
        service = PromotionService()

        with patch.object(service.repository, "has_usages", return_value=False):
            result = service.retire_promotion(str(promotion.id))

        promotion.refresh_from_db()
        assert result.deleted is False
        assert result.disabled is True
        assert promotion.is_active is False
