"""Promotion DRF serializers (input validation only).

Responses are rendered from the service DTOs.
"""

from __future__ import annotations

from rest_framework import serializers


class CodeLineSerializer(serializers.Serializer):
    unit_price_cents = serializers.IntegerField(min_value=0)
    quantity = serializers.IntegerField(min_value=1)


class ValidateCodeSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=50, trim_whitespace=True)
    product_ids = serializers.ListField(
        child=serializers.UUIDField(),
        required=False,
        default=list,
    )


class ApplyCodeSerializer(ValidateCodeSerializer):
    lines = CodeLineSerializer(many=True, required=False, default=list)


class AvailabilityQuerySerializer(serializers.Serializer):
    """``?product_ids=<uuid>,<uuid>``"""

    product_ids = serializers.CharField()

    def validate_product_ids(self, value: str) -> list:
        field = serializers.UUIDField()
        ids = [part.strip() for part in value.split(",") if part.strip()]
        if not ids:
            raise serializers.ValidationError("At least one product id is required.")
        return [field.to_internal_value(part) for part in ids]
