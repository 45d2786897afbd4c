"""Order DRF serializers for API input.

Business logic lives in the Service Layer, which receives Pydantic DTOs
from ``dtos.py``; responses are rendered from the output DTOs.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.orders.constants import FulfillmentType, OrderStatus

# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------


class CreateOrderLineSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)
    size = serializers.CharField(max_length=30, required=False, allow_blank=True, default="")
    color = serializers.CharField(max_length=30, required=False, allow_blank=True, default="")


class CreateOrderSerializer(serializers.Serializer):
    customer_email = serializers.EmailField()
    fulfillment_type = serializers.ChoiceField(
        choices=FulfillmentType.choices,
        default=FulfillmentType.SHIPPING,
    )
    lines = CreateOrderLineSerializer(many=True, allow_empty=False)
    promotional_code = serializers.CharField(
        max_length=50,
        required=False,
        allow_blank=True,
        allow_null=True,
    )
    points_discount_cents = serializers.IntegerField(min_value=0, required=False, default=0)


# ---------------------------------------------------------------------------
# CMS
# ---------------------------------------------------------------------------


class UpdateOrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)
    expected_version = serializers.IntegerField(min_value=1)
    tracking_number = serializers.CharField(max_length=100, required=False, allow_blank=True)
    courier_name = serializers.CharField(max_length=100, required=False, allow_blank=True)
    cancellation_reason = serializers.CharField(required=False, allow_blank=True)
    delivery_reason = serializers.CharField(required=False, allow_blank=True)
    rejection_reason = serializers.CharField(required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)


class RejectOrderSerializer(serializers.Serializer):
    reason = serializers.CharField(trim_whitespace=True)
    expected_version = serializers.IntegerField(min_value=1)
    notes = serializers.CharField(required=False, allow_blank=True)


class SalesQuerySerializer(serializers.Serializer):
    """``?status=PENDING&status=IN_TRANSIT&date_from=...&limit=20&offset=0``"""

    status = serializers.ListField(
        child=serializers.ChoiceField(choices=OrderStatus.choices),
        required=False,
        default=list,
    )
    date_from = serializers.DateTimeField(required=False)
    date_to = serializers.DateTimeField(required=False)
    limit = serializers.IntegerField(min_value=1, required=False)
    offset = serializers.IntegerField(min_value=0, required=False, default=0)
