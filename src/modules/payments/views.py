"""Payment gateway API views."""

from __future__ import annotations

from rest_framework.decorators import action
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.viewsets import ViewSet

from modules.payments.dtos import PriceQuoteRequestDTO
from modules.payments.serializers import PriceQuoteRequestSerializer
from modules.payments.services import PaymentGatewayService


class PaymentGatewayViewSet(ViewSet):
    permission_classes = [AllowAny]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = PaymentGatewayService()

    @action(detail=True, methods=["post"])
    def quote(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/payment-gateways/{pk}/quote/"""
        serializer = PriceQuoteRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = self._service.calculate_final_price(
            PriceQuoteRequestDTO(
                gateway_id=pk,
                base_price_cents=data["base_price_cents"],
                product_id=data.get("product_id"),
                category_id=data.get("category_id"),
            )
        )
        return Response(result.model_dump(mode="json"))
