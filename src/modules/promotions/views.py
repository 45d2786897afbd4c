"""Promotion API views.

Thin adapters over ``PromotionalCodeService`` and ``PromotionService``;
domain exceptions propagate to the project exception handler.
"""

from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.viewsets import ViewSet

from modules.core.permissions import IsCmsOperator
from modules.promotions.dtos import ApplyCodeDTO, CodeLineDTO
from modules.promotions.serializers import (
    ApplyCodeSerializer,
    AvailabilityQuerySerializer,
    ValidateCodeSerializer,
)
from modules.promotions.services import PromotionalCodeService, PromotionService


def _user_id(request: Request):
    user = request.user
    return user.pk if user is not None and user.is_authenticated else None


class PromotionalCodeViewSet(ViewSet):
    """Storefront endpoints for promotional codes."""

    permission_classes = [AllowAny]
    throttle_scope = "promo_codes"

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = PromotionalCodeService()

    @action(detail=False, methods=["post"])
    def validate(self, request: Request) -> Response:
        """POST /api/v1/promotional-codes/validate/

        Informational: a blocked cart still gets ``valid: true`` plus a warning.
        """
        serializer = ValidateCodeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = self._service.validate_code(
            ApplyCodeDTO(
                code=data["code"],
                product_ids=data["product_ids"],
                user_id=_user_id(request),
            )
        )
        return Response(result.model_dump(mode="json"))

    @action(detail=False, methods=["get"])
    def availability(self, request: Request) -> Response:
        """GET /api/v1/promotional-codes/availability/?product_ids=..."""
        serializer = AvailabilityQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        result = self._service.check_availability(serializer.validated_data["product_ids"])
        return Response(
            {"can_apply": not result.blocked, **result.model_dump(mode="json")}
        )

    @action(detail=False, methods=["post"])
    def apply(self, request: Request) -> Response:
        """POST /api/v1/promotional-codes/apply/

        Enforcement: responds 403 when the cart is blocked.
        """
        serializer = ApplyCodeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        quote = self._service.quote_code(
            ApplyCodeDTO(
                code=data["code"],
                product_ids=data["product_ids"],
                user_id=_user_id(request),
                lines=[CodeLineDTO(**line) for line in data["lines"]],
            )
        )
        return Response(quote.model_dump(mode="json"))


class PromotionViewSet(ViewSet):
    """CMS endpoints for promotions."""

    permission_classes = [IsCmsOperator]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = PromotionService()

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        """DELETE /api/v1/promotions/{pk}/

        Unused promotions are deleted (204); used ones are disabled (200).
        """
        result = self._service.retire_promotion(pk)
        if result.deleted:
            return Response(status=status.HTTP_204_NO_CONTENT)
        return Response(result.model_dump(mode="json"))
