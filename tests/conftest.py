from __future__ import annotations

from datetime import timedelta
from itertools import count

import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.utils import timezone
from rest_framework.test import APIClient

from modules.core.permissions import CmsRole
from modules.orders.constants import FulfillmentType, OrderStatus
from modules.orders.dtos import Actor, CreateOrderDTO, CreateOrderLineDTO, UpdateOrderStatusDTO
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderManagementService
from modules.payments.constants import GatewayProvider
from modules.payments.models import PaymentGateway
from modules.products.models import Category, Product
from modules.products.repositories.django_repository import ProductDjangoRepository
from modules.promotions.constants import DiscountType
from modules.promotions.models import Promotion, PromotionalCode

User = get_user_model()

_sequence = count(1)


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@pytest.fixture()
def cms_user():
    user = User.objects.create_user(
        username="cms-operator",
        email="operator@example.com",
        password="testpass123",
    )
    group, _ = Group.objects.get_or_create(name=CmsRole.ADMIN)
    user.groups.add(group)
    return user


@pytest.fixture()
def cms_client(cms_user):
    client = APIClient()
    client.force_authenticate(user=cms_user)
    return client


@pytest.fixture()
def buyer():
    return User.objects.create_user(
        username="buyer",
        email="buyer@example.com",
        password="testpass123",
    )


@pytest.fixture()
def actor():
    return Actor(id="42", email="operator@example.com", role=CmsRole.ADMIN)


# ---------------------------------------------------------------------------
# Catalog and promotions
# ---------------------------------------------------------------------------


@pytest.fixture()
def category():
    return Category.objects.create(name="Remeras", slug="remeras")


@pytest.fixture()
def make_product(category):
    def _make(**overrides) -> Product:
        n = next(_sequence)
        defaults = {
            "name": f"Remera {n}",
            "slug": f"remera-{n}",
            "price_cents": 10000,
            "stock": 100,
            "category": category,
        }
        defaults.update(overrides)
        return Product.objects.create(**defaults)

    return _make


@pytest.fixture()
def product(make_product):
    return make_product(name="Remera basica")


@pytest.fixture()
def make_promotion():
    def _make(**overrides) -> Promotion:
        now = timezone.now()
        defaults = {
            "name": "Hot Sale",
            "discount_type": DiscountType.PERCENTAGE,
            "discount_value": 20,
            "starts_at": now - timedelta(days=1),
            "ends_at": now + timedelta(days=1),
        }
        defaults.update(overrides)
        return Promotion.objects.create(**defaults)

    return _make


@pytest.fixture()
def make_code():
    def _make(**overrides) -> PromotionalCode:
        defaults = {
            "code": "WELCOME10",
            "discount_kind": "PERCENTAGE",
            "discount_value": 10,
        }
        defaults.update(overrides)
        return PromotionalCode.objects.create(**defaults)

    return _make


@pytest.fixture()
def gateway():
    return PaymentGateway.objects.create(
        name="Card",
        provider=GatewayProvider.CARD,
        fees_fixed_cents=100,
        fees_percent="2.00",
    )


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


@pytest.fixture()
def order_service():
    return OrderManagementService(
        order_repository=OrderDjangoRepository(),
        product_repository=ProductDjangoRepository(),
    )


@pytest.fixture()
def make_order(order_service, product):
    def _make(fulfillment_type=FulfillmentType.SHIPPING, quantity=1, **overrides):
        dto = CreateOrderDTO(
            customer_email=overrides.pop("customer_email", "buyer@example.com"),
            fulfillment_type=fulfillment_type,
            lines=overrides.pop(
                "lines",
                [CreateOrderLineDTO(product_id=product.id, quantity=quantity)],
            ),
            **overrides,
        )
        return order_service.create_order(dto)

    return _make


_TRANSITION_DATA = {
    OrderStatus.IN_TRANSIT: {"tracking_number": "TRK-0001", "courier_name": "Andreani"},
}


@pytest.fixture()
def advance_order(order_service, actor):
    """Walk an order through ``statuses`` with the side data each step needs."""

    def _advance(order, *statuses):
        for new_status in statuses:
            order = order_service.update_order_status(
                UpdateOrderStatusDTO(
                    order_id=order.id,
                    new_status=new_status,
                    actor=actor,
                    expected_version=order.version,
                    **_TRANSITION_DATA.get(new_status, {}),
                )
            )
        return order

    return _advance
