"""Order API views.

Thin adapters over ``OrderManagementService``: they validate HTTP input
with DRF serializers, build DTOs and render output DTOs.  Domain
exceptions propagate to ``modules.core.exceptions.domain_exception_handler``.
"""

from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.viewsets import ViewSet

from modules.core.permissions import IsCmsOperator, role_of
from modules.orders.dtos import (
    Actor,
    AuditEntryDTO,
    CreateOrderDTO,
    CreateOrderLineDTO,
    OrderFilters,
    OrderSnapshot,
    RejectOrderDTO,
    UpdateOrderStatusDTO,
)
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.serializers import (
    CreateOrderSerializer,
    RejectOrderSerializer,
    SalesQuerySerializer,
    UpdateOrderStatusSerializer,
)
from modules.orders.services import OrderManagementService
from modules.products.repositories.django_repository import ProductDjangoRepository


def _build_service() -> OrderManagementService:
    return OrderManagementService(
        order_repository=OrderDjangoRepository(),
        product_repository=ProductDjangoRepository(),
    )


def _actor(request: Request) -> Actor:
    user = request.user
    return Actor(
        id=str(user.pk),
        email=getattr(user, "email", "") or "",
        role=role_of(user),
    )


class CheckoutViewSet(ViewSet):
    """Storefront checkout: turns a cart into a PENDING order."""

    permission_classes = [AllowAny]
    throttle_scope = "checkout"

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = _build_service()

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/"""
        serializer = CreateOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        user = request.user
        dto = CreateOrderDTO(
            customer_email=data["customer_email"],
            fulfillment_type=data["fulfillment_type"],
            lines=[CreateOrderLineDTO(**line) for line in data["lines"]],
            user_id=user.pk if user.is_authenticated else None,
            promotional_code=data.get("promotional_code") or None,
            points_discount_cents=data["points_discount_cents"],
        )
        order = self._service.create_order(dto)
        return Response(
            OrderSnapshot.from_entity(order).model_dump(mode="json"),
            status=status.HTTP_201_CREATED,
        )


class CmsOrderViewSet(ViewSet):
    """Back-office order operations."""

    permission_classes = [IsCmsOperator]
    throttle_scope = "cms_orders"

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = _build_service()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/cms/orders/ (sales listing)"""
        query = SalesQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        data = query.validated_data
        page = self._service.get_sales(
            OrderFilters(
                statuses=data["status"],
                date_from=data.get("date_from"),
                date_to=data.get("date_to"),
                limit=data.get("limit"),
                offset=data["offset"],
            )
        )
        return Response(page.model_dump(mode="json"))

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/cms/orders/{pk}/"""
        order = self._service.get_order(pk)
        return Response(OrderSnapshot.from_entity(order).model_dump(mode="json"))

    @action(detail=True, methods=["get"])
    def transitions(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/cms/orders/{pk}/transitions/"""
        result = self._service.get_available_transitions(pk)
        return Response(result.model_dump(mode="json"))

    @action(detail=True, methods=["get"])
    def audit(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/cms/orders/{pk}/audit/"""
        entries = self._service.get_order_audit(pk)
        return Response(
            [AuditEntryDTO.from_entity(entry).model_dump(mode="json") for entry in entries]
        )

    @action(detail=False, methods=["get"])
    def dashboard(self, request: Request) -> Response:
        """GET /api/v1/cms/orders/dashboard/"""
        return Response(self._service.get_dashboard_stats().model_dump(mode="json"))

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/cms/orders/{pk}/

        Body carries the target ``status`` and the ``expected_version`` the
        operator read; a moved version answers 409.
        """
        serializer = UpdateOrderStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        order = self._service.update_order_status(
            UpdateOrderStatusDTO(
                order_id=pk,
                new_status=data["status"],
                actor=_actor(request),
                expected_version=data["expected_version"],
                tracking_number=data.get("tracking_number"),
                courier_name=data.get("courier_name"),
                cancellation_reason=data.get("cancellation_reason"),
                delivery_reason=data.get("delivery_reason"),
                rejection_reason=data.get("rejection_reason"),
                notes=data.get("notes"),
            )
        )
        return Response(OrderSnapshot.from_entity(order).model_dump(mode="json"))

    @action(detail=True, methods=["post"])
    def reject(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/cms/orders/{pk}/reject/"""
        serializer = RejectOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        order = self._service.reject_order(
            RejectOrderDTO(
                order_id=pk,
                reason=data["reason"],
                actor=_actor(request),
                expected_version=data["expected_version"],
                notes=data.get("notes"),
            )
        )
        return Response(OrderSnapshot.from_entity(order).model_dump(mode="json"))
