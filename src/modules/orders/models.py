"""Order, OrderLineItem and OrderAudit models.

Business rules implemented:
- ``version`` starts at 1 and is incremented by exactly one on every
  state-changing write (compare-and-set in the repository).
- Status timestamps are write-once: stamped the first time a status is
  entered and never overwritten.
- Orders are financial records: soft delete only, never hard-deleted.
- Line items snapshot the charged and the original unit price;
  ``unit_price_cents = original_unit_price_cents - discount_cents``.
- Line items and audit entries are append-only.
- Order number is a human-readable identifier (``ORD-YYYYMMDD-XXXXXX``).
"""

from __future__ import annotations

import secrets
from typing import Any

import structlog
from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from modules.core.models import AppendOnlyModel, SoftDeleteModel
from modules.orders.constants import (
    ORDER_NUMBER_MAX_RETRIES,
    TERMINAL_STATES,
    FulfillmentType,
    OrderStatus,
)
from modules.promotions.constants import DiscountSource
from shared.domain.events import DomainEventMixin

logger = structlog.get_logger(__name__)


class Order(DomainEventMixin, SoftDeleteModel):
    """Order aggregate root.

    Mutated only through ``OrderManagementService``; ``status`` and the
    transition fields are written with a version-checked ``UPDATE``.
    """

    order_number: models.CharField = models.CharField(
        max_length=20, unique=True, editable=False
    )
    user: models.ForeignKey = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="orders",
        null=True,
        blank=True,
    )
    customer_email: models.EmailField = models.EmailField()
    status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )
    fulfillment_type: models.CharField = models.CharField(
        max_length=10,
        choices=FulfillmentType.choices,
        default=FulfillmentType.SHIPPING,
    )
    version: models.PositiveIntegerField = models.PositiveIntegerField(default=1)

    subtotal_cents: models.PositiveIntegerField = models.PositiveIntegerField(default=0)
    code_discount_cents: models.PositiveIntegerField = models.PositiveIntegerField(default=0)
    points_discount_cents: models.PositiveIntegerField = models.PositiveIntegerField(default=0)
    total_cents: models.PositiveIntegerField = models.PositiveIntegerField(default=0)
    promotional_code: models.ForeignKey = models.ForeignKey(
        "promotions.PromotionalCode",
        on_delete=models.PROTECT,
        related_name="orders",
        null=True,
        blank=True,
    )

    tracking_number: models.CharField = models.CharField(max_length=100, blank=True, default="")
    courier_name: models.CharField = models.CharField(max_length=100, blank=True, default="")
    shipping_notes: models.TextField = models.TextField(blank=True, default="")
    cancellation_reason: models.TextField = models.TextField(blank=True, default="")
    rejection_reason: models.TextField = models.TextField(blank=True, default="")
    delivery_reason: models.TextField = models.TextField(blank=True, default="")
    delivery_attempts: models.PositiveIntegerField = models.PositiveIntegerField(default=0)
    invoice_reference: models.CharField = models.CharField(max_length=255, blank=True, default="")

    payment_approved_at = models.DateTimeField(null=True, blank=True)
    payment_rejected_at = models.DateTimeField(null=True, blank=True)
    preparing_started_at = models.DateTimeField(null=True, blank=True)
    ready_for_shipping_at = models.DateTimeField(null=True, blank=True)
    ready_for_pickup_at = models.DateTimeField(null=True, blank=True)
    shipped_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    not_delivered_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(version__gte=1),
                name="orders_version_positive",
            ),
        ]

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    @staticmethod
    def generate_order_number() -> str:
        """Generate a human-readable order number: ``ORD-YYYYMMDD-XXXXXX``."""
        now = timezone.now()
        suffix = secrets.token_hex(3).upper()
        return f"ORD-{now:%Y%m%d}-{suffix}"

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self.order_number:
            for _ in range(ORDER_NUMBER_MAX_RETRIES):
                candidate = self.generate_order_number()
                if not Order.objects.filter(order_number=candidate).exists():
                    self.order_number = candidate
                    break
            else:
                raise RuntimeError(
                    f"Failed to generate unique order_number after "
                    f"{ORDER_NUMBER_MAX_RETRIES} attempts"
                )
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.order_number} ({self.status})"


class OrderLineItem(AppendOnlyModel):
    """Priced cart line, frozen at checkout."""

    order: models.ForeignKey = models.ForeignKey(
        Order,
        on_delete=models.PROTECT,
        related_name="lines",
    )
    product: models.ForeignKey = models.ForeignKey(
        "products.Product",
        on_delete=models.PROTECT,
        related_name="order_lines",
    )
    product_name: models.CharField = models.CharField(max_length=255)
    quantity: models.PositiveIntegerField = models.PositiveIntegerField(
        validators=[MinValueValidator(1)],
    )
    size: models.CharField = models.CharField(max_length=30, blank=True, default="")
    color: models.CharField = models.CharField(max_length=30, blank=True, default="")
    original_unit_price_cents: models.PositiveIntegerField = models.PositiveIntegerField()
    discount_cents: models.PositiveIntegerField = models.PositiveIntegerField(default=0)
    unit_price_cents: models.PositiveIntegerField = models.PositiveIntegerField()
    discount_source: models.CharField = models.CharField(
        max_length=20,
        choices=DiscountSource.choices,
        default=DiscountSource.NONE,
    )
    promotion: models.ForeignKey = models.ForeignKey(
        "promotions.Promotion",
        on_delete=models.PROTECT,
        related_name="order_lines",
        null=True,
        blank=True,
    )

    class Meta:
        db_table = "order_line_items"
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=1),
                name="order_lines_quantity_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(
                    unit_price_cents=models.F("original_unit_price_cents")
                    - models.F("discount_cents")
                ),
                name="order_lines_price_consistent",
            ),
        ]

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    def __str__(self) -> str:
        return f"{self.product_name} x{self.quantity}"


class OrderAudit(AppendOnlyModel):
    """Append-only trail of order creation and every status change.

    ``actor_id`` / ``actor_email`` are copied from the caller's context so
    the entry survives user deletion.
    """

    order: models.ForeignKey = models.ForeignKey(
        Order,
        on_delete=models.PROTECT,
        related_name="audit_entries",
    )
    action: models.CharField = models.CharField(max_length=80)
    previous_status: models.CharField = models.CharField(  # noqa: DJ01
        max_length=20,
        choices=OrderStatus.choices,
        null=True,
        blank=True,
    )
    new_status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
    )
    actor_id: models.CharField = models.CharField(max_length=64, blank=True, default="")
    actor_email: models.CharField = models.CharField(max_length=254, blank=True, default="")
    notes: models.TextField = models.TextField(blank=True, default="")
    metadata: models.JSONField = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = "order_audit"
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(
                fields=["order", "-created_at"],
                name="order_audit_order_created_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.order_id} : {self.previous_status} -> {self.new_status}"
