"""Integration tests for the code exclusivity resolver.

Scenarios:
- A: liquidation blocks, even with a running promotion in the same cart.
- B: a running promotion blocks and is reported.
- C: nothing blocks.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone as dt_timezone
from uuid import uuid4

import pytest

from modules.promotions.constants import BlockReason
from modules.promotions.exclusivity import ExclusivityResolver

pytestmark = pytest.mark.integration

NOW = datetime(2026, 3, 10, 15, 30, tzinfo=dt_timezone.utc)


def _resolver(moment=NOW) -> ExclusivityResolver:
    return ExclusivityResolver(clock=lambda: moment)


@pytest.fixture()
def running_promotion(make_promotion):
    return make_promotion(
        name="Hot Sale",
        starts_at=NOW - timedelta(days=1),
        ends_at=NOW + timedelta(days=1),
    )


class TestLiquidation:
    def test_liquidation_blocks_and_lists_every_product(self, make_product, running_promotion):
        first = make_product(name="Buzo", in_liquidation=True, liquidation_percent=30)
        second = make_product(name="Campera", in_liquidation=True, liquidation_percent=15)
        promoted = make_product(applies_promotion=True, promotion=running_promotion)

        result = _resolver().resolve([first.id, second.id, promoted.id])

        assert result.blocked is True
        assert result.reason == BlockReason.LIQUIDATION
        assert result.blocking_liquidation == ["Buzo", "Campera"]
        assert result.blocking_promotion is None
        assert "Buzo" in result.message

    def test_liquidation_flag_without_percentage_does_not_block(self, make_product):
        product = make_product(in_liquidation=True, liquidation_percent=0)

        assert _resolver().resolve([product.id]).blocked is False


class TestActivePromotion:
    def test_running_promotion_blocks(self, make_product, running_promotion):
        promoted = make_product(applies_promotion=True, promotion=running_promotion)
        plain = make_product()

        result = _resolver().resolve([plain.id, promoted.id])

        assert result.blocked is True
        assert result.reason == BlockReason.ACTIVE_PROMOTION
        assert result.blocking_promotion.id == running_promotion.id
        assert result.blocking_promotion.name == "Hot Sale"
        assert "Hot Sale" in result.message

    def test_oldest_running_promotion_is_reported(self, make_product, make_promotion):
        older = make_promotion(
            name="Older", starts_at=NOW - timedelta(days=2), ends_at=NOW + timedelta(days=2)
        )
        newer = make_promotion(
            name="Newer", starts_at=NOW - timedelta(days=1), ends_at=NOW + timedelta(days=1)
        )
        products = [
            make_product(applies_promotion=True, promotion=newer),
            make_product(applies_promotion=True, promotion=older),
        ]

        result = _resolver().resolve([p.id for p in products])

        assert result.blocking_promotion.id == older.id

    def test_promotion_blocks_even_when_not_exclusive(self, make_product, make_promotion):
        promotion = make_promotion(
            exclusive_with_codes=False,
            starts_at=NOW - timedelta(hours=1),
            ends_at=NOW + timedelta(hours=1),
        )
        product = make_product(applies_promotion=True, promotion=promotion)

        assert _resolver().resolve([product.id]).blocked is True

    def test_disabled_promotion_does_not_block(self, make_product, make_promotion):
        promotion = make_promotion(
            is_active=False,
            starts_at=NOW - timedelta(hours=1),
            ends_at=NOW + timedelta(hours=1),
        )
        product = make_product(applies_promotion=True, promotion=promotion)

        assert _resolver().resolve([product.id]).blocked is False

    def test_expired_promotion_does_not_block(self, make_product, make_promotion):
        promotion = make_promotion(
            starts_at=NOW - timedelta(days=3),
            ends_at=NOW - timedelta(seconds=1),
        )
        product = make_product(applies_promotion=True, promotion=promotion)

        assert _resolver().resolve([product.id]).blocked is False

    def test_product_not_flagged_for_promotion_is_ignored(self, make_product, running_promotion):
        product = make_product(applies_promotion=False, promotion=running_promotion)

        assert _resolver().resolve([product.id]).blocked is False

    @pytest.mark.parametrize("edge", ["starts_at", "ends_at"])
    def test_window_bounds_are_inclusive(self, make_product, make_promotion, edge):
        if edge == "starts_at":
            window = {"starts_at": NOW, "ends_at": NOW + timedelta(hours=1)}
        else:
            window = {"starts_at": NOW - timedelta(hours=1), "ends_at": NOW}
        promotion = make_promotion(**window)
        product = make_product(applies_promotion=True, promotion=promotion)

        assert _resolver().resolve([product.id]).blocked is True


class TestNotBlocked:
    def test_plain_products(self, make_product):
        products = [make_product(), make_product()]

        result = _resolver().resolve([p.id for p in products])

        assert result.blocked is False
        assert result.reason is None
        assert result.blocking_liquidation == []

    def test_empty_cart(self):
        assert _resolver().resolve([]).blocked is False

    def test_unknown_products(self):
        assert _resolver().resolve([uuid4()]).blocked is False
