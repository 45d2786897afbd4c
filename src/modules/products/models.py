"""Catalog records consulted by discount resolution and checkout.

Catalog CRUD lives in the CMS; this module only defines the records and
the flags the pricing code reads:

- ``in_liquidation`` + ``liquidation_percent``: clearance discount, the
  highest-priority discount and a hard block for promotional codes.
- ``applies_promotion`` + ``promotion``: the promotion campaign the product
  takes part in (only honoured while the promotion is active).
- ``stock``: units on hand, taken when an order's payment is approved and
  given back when a confirmed order is cancelled or rejected.
"""

from __future__ import annotations

import structlog
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator
from django.db import models

from modules.core.models import SoftDeleteModel

logger = structlog.get_logger(__name__)


class Category(SoftDeleteModel):
    name = models.CharField(max_length=120)
    slug = models.SlugField(max_length=140, unique=True)
    parent = models.ForeignKey(
        "self",
        on_delete=models.PROTECT,
        related_name="children",
        null=True,
        blank=True,
    )
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "categories"
        ordering = ["name"]
        verbose_name_plural = "categories"

    def __str__(self) -> str:
        return self.name


class Product(SoftDeleteModel):
    """Sellable product. Prices are integer cents."""

    name = models.CharField(max_length=255)
    slug = models.SlugField(max_length=280, unique=True)
    description = models.TextField(blank=True, default="")
    price_cents = models.PositiveIntegerField()
    stock = models.PositiveIntegerField(default=0)
    category = models.ForeignKey(
        Category,
        on_delete=models.PROTECT,
        related_name="products",
        null=True,
        blank=True,
    )
    is_active = models.BooleanField(default=True)

    in_liquidation = models.BooleanField(default=False)
    liquidation_percent = models.PositiveSmallIntegerField(
        default=0,
        validators=[MaxValueValidator(100)],
    )
    applies_promotion = models.BooleanField(default=False)
    promotion = models.ForeignKey(
        "promotions.Promotion",
        on_delete=models.SET_NULL,
        related_name="products",
        null=True,
        blank=True,
    )

    class Meta:
        db_table = "products"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["in_liquidation"], name="products_liquidation_idx"),
            models.Index(fields=["applies_promotion"], name="products_promotion_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(liquidation_percent__lte=100),
                name="products_liquidation_percent_range",
            ),
        ]

    @property
    def has_liquidation(self) -> bool:
        return self.in_liquidation and self.liquidation_percent > 0

    def clean(self) -> None:
        super().clean()
        if self.in_liquidation and not self.liquidation_percent:
            raise ValidationError(
                {"liquidation_percent": "A product in liquidation needs a discount percentage."}
            )
        if self.applies_promotion and self.promotion_id is None:
            raise ValidationError(
                {"promotion": "Select the promotion this product takes part in."}
            )

    def save(self, *args, **kwargs) -> None:
        is_new = self._state.adding
        super().save(*args, **kwargs)
        if is_new:
            logger.info(
                "product_created",
                product_id=str(self.id),
                name=self.name,
                price_cents=self.price_cents,
            )

    def __str__(self) -> str:
        return self.name
