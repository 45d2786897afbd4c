from __future__ import annotations

import random
from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.core.management.base import BaseCommand
from django.utils import timezone

from modules.core.permissions import CmsRole
from modules.orders.constants import FulfillmentType, OrderStatus
from modules.orders.dtos import Actor, CreateOrderDTO, CreateOrderLineDTO, UpdateOrderStatusDTO
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderManagementService
from modules.payments.constants import GatewayProvider, RuleAction, RuleScope
from modules.payments.models import GatewayPriceRule, PaymentGateway
from modules.products.models import Category, Product
from modules.products.repositories.django_repository import ProductDjangoRepository
from modules.promotions.constants import BundleType, CodeDiscountKind, DiscountType
from modules.promotions.models import Promotion, PromotionalCode

# Happy path walked by seeded orders, per fulfillment type.
_SEED_PATHS = {
    FulfillmentType.SHIPPING: [
        OrderStatus.PAYMENT_APPROVED,
        OrderStatus.PREPARING,
        OrderStatus.READY_FOR_SHIPPING,
        OrderStatus.IN_TRANSIT,
        OrderStatus.DELIVERED,
    ],
    FulfillmentType.PICKUP: [
        OrderStatus.PAYMENT_APPROVED,
        OrderStatus.PREPARING,
        OrderStatus.READY_FOR_PICKUP,
        OrderStatus.DELIVERED,
    ],
}


class Command(BaseCommand):
    help = "Seed database with realistic development data."

    def add_arguments(self, parser):
        parser.add_argument("--orders", type=int, default=20)

    def handle(self, *args, **options):
        random.seed(42)
        self.stdout.write("Seeding development data...")

        operator = self._seed_users()
        products = self._seed_catalog()
        self._seed_codes()
        self._seed_gateways()
        orders_created = self._seed_orders(products, operator, options["orders"])

        self.stdout.write(
            self.style.SUCCESS(
                "Seed completed: "
                f"products={len(products)}, "
                f"orders={orders_created}"
            )
        )

    def _seed_users(self):
        User = get_user_model()
        for role in CmsRole:
            Group.objects.get_or_create(name=role.value)
        if not User.objects.filter(username="admin").exists():
            User.objects.create_superuser("admin", email="admin@example.com", password="admin123")
        operator, created = User.objects.get_or_create(
            username="operator",
            defaults={"email": "operator@example.com"},
        )
        if created:
            operator.set_password("operator123")
            operator.save()
            operator.groups.add(Group.objects.get(name=CmsRole.ADMIN))
        return operator

    def _seed_catalog(self) -> list[Product]:
        self.stdout.write("Creating catalog...")
        now = timezone.now()
        apparel, _ = Category.objects.get_or_create(slug="apparel", defaults={"name": "Apparel"})
        shoes, _ = Category.objects.get_or_create(slug="shoes", defaults={"name": "Shoes"})

        summer, _ = Promotion.objects.get_or_create(
            name="Summer sale",
            defaults={
                "discount_type": DiscountType.PERCENTAGE,
                "discount_value": 15,
                "starts_at": now - timedelta(days=7),
                "ends_at": now + timedelta(days=30),
            },
        )
        socks_deal, _ = Promotion.objects.get_or_create(
            name="Socks 3x2",
            defaults={
                "discount_type": DiscountType.BUNDLE,
                "bundle_type": BundleType.THREE_FOR_TWO,
                "starts_at": now - timedelta(days=1),
                "ends_at": now + timedelta(days=14),
            },
        )

        catalog = [
            ("classic-tee", "Classic tee", apparel, 1500000, {}),
            ("linen-shirt", "Linen shirt", apparel, 3200000, {"applies_promotion": True, "promotion": summer}),
            ("wool-socks", "Wool socks", apparel, 450000, {"applies_promotion": True, "promotion": socks_deal}),
            ("old-season-jacket", "Old season jacket", apparel, 8900000, {"in_liquidation": True, "liquidation_percent": 40}),
            ("running-shoes", "Running shoes", shoes, 9800000, {}),
            ("leather-boots", "Leather boots", shoes, 15400000, {}),
        ]
        products: list[Product] = []
        for slug, name, category, price_cents, flags in catalog:
            product, _ = Product.objects.get_or_create(
                slug=slug,
                defaults={
                    "name": name,
                    "category": category,
                    "price_cents": price_cents,
                    "stock": 500,
                    **flags,
                },
            )
            products.append(product)
        self.stdout.write(self.style.SUCCESS("Creating catalog... Done!"))
        return products

    def _seed_codes(self) -> None:
        PromotionalCode.objects.get_or_create(
            code="WELCOME10",
            defaults={
                "discount_kind": CodeDiscountKind.PERCENTAGE,
                "discount_value": 10,
                "max_uses": 500,
                "max_uses_per_user": 1,
            },
        )
        PromotionalCode.objects.get_or_create(
            code="TAKE2PAY1",
            defaults={"bundle_type": BundleType.TWO_FOR_ONE, "max_uses": 100},
        )

    def _seed_gateways(self) -> None:
        card, created = PaymentGateway.objects.get_or_create(
            name="Card",
            defaults={
                "provider": GatewayProvider.CARD,
                "fees_fixed_cents": 10000,
                "fees_percent": Decimal("2.90"),
            },
        )
        if created:
            GatewayPriceRule.objects.create(
                gateway=card,
                scope=RuleScope.GLOBAL,
                action=RuleAction.CHARGE,
                percent=Decimal("5"),
                priority=1,
                description="Installments surcharge",
            )
        transfer, created = PaymentGateway.objects.get_or_create(
            name="Bank transfer",
            defaults={"provider": GatewayProvider.BANK_TRANSFER},
        )
        if created:
            GatewayPriceRule.objects.create(
                gateway=transfer,
                scope=RuleScope.GLOBAL,
                action=RuleAction.DISCOUNT,
                percent=Decimal("10"),
                priority=1,
                description="Transfer discount",
            )

    def _seed_orders(self, products: list[Product], operator, count: int) -> int:
        self.stdout.write("Creating orders...")
        service = OrderManagementService(
            order_repository=OrderDjangoRepository(),
            product_repository=ProductDjangoRepository(),
        )
        actor = Actor(id=str(operator.pk), email=operator.email, role=CmsRole.ADMIN)

        for i in range(count):
            fulfillment = random.choice(list(FulfillmentType))
            picked = random.sample(products, k=random.randint(1, 3))
            order = service.create_order(
                CreateOrderDTO(
                    customer_email=f"buyer{i + 1}@example.com",
                    fulfillment_type=fulfillment,
                    lines=[
                        CreateOrderLineDTO(product_id=product.id, quantity=random.randint(1, 3))
                        for product in picked
                    ],
                )
            )
            steps = _SEED_PATHS[fulfillment][: random.randint(0, len(_SEED_PATHS[fulfillment]))]
            for target in steps:
                extra = {}
                if target == OrderStatus.IN_TRANSIT:
                    extra = {"tracking_number": f"TRK{i + 1:06d}", "courier_name": "Andreani"}
                order = service.update_order_status(
                    UpdateOrderStatusDTO(
                        order_id=order.id,
                        new_status=target,
                        actor=actor,
                        expected_version=order.version,
                        **extra,
                    )
                )

        self.stdout.write(self.style.SUCCESS("Creating orders... Done!"))
        return count
