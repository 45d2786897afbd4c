from __future__ import annotations

from rest_framework import serializers


class PriceQuoteRequestSerializer(serializers.Serializer):
    base_price_cents = serializers.IntegerField(min_value=0)
    product_id = serializers.UUIDField(required=False, allow_null=True)
    category_id = serializers.UUIDField(required=False, allow_null=True)
