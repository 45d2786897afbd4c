"""API tests for POST /api/v1/payment-gateways/{pk}/quote/."""

from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

import pytest

from modules.payments.constants import RuleAction, RuleScope
from modules.payments.models import GatewayPriceRule

pytestmark = pytest.mark.integration


def _url(pk):
    return f"/api/v1/payment-gateways/{pk}/quote/"


class TestQuoteApi:
    def test_quote(self, api_client, gateway):
        GatewayPriceRule.objects.create(
            gateway=gateway,
            scope=RuleScope.GLOBAL,
            action=RuleAction.DISCOUNT,
            percent=Decimal("10.00"),
        )

        response = api_client.post(_url(gateway.id), {"base_price_cents": 10000}, format="json")

        assert response.status_code == 200
        assert response.data["final_price_cents"] == 9280
        assert response.data["gateway_fees"] == {
            "fixed_cents": 100,
            "percent_cents": 180,
            "total_cents": 280,
        }
        assert response.data["applied_rules"][0]["amount_cents"] == -1000

    def test_category_rule(self, api_client, gateway, category):
        GatewayPriceRule.objects.create(
            gateway=gateway,
            scope=RuleScope.CATEGORY,
            scope_id=category.id,
            action=RuleAction.CHARGE,
            amount_cents=900,
        )

        response = api_client.post(
            _url(gateway.id),
            {"base_price_cents": 10000, "category_id": str(category.id)},
            format="json",
        )

        assert response.data["final_price_cents"] == 10900 + 100 + 218

    def test_negative_price_gets_400(self, api_client, gateway):
        response = api_client.post(_url(gateway.id), {"base_price_cents": -1}, format="json")

        assert response.status_code == 400
        assert response.data["errors"][0]["attr"] == "base_price_cents"

    @pytest.mark.parametrize("pk", [uuid4(), "not-a-uuid"])
    def test_unknown_gateway_gets_404(self, api_client, pk):
        response = api_client.post(_url(pk), {"base_price_cents": 100}, format="json")

        assert response.status_code == 404
        assert response.data["errors"][0]["code"] == "GatewayNotFound"
