"""Promotions and promotional codes.

Business rules implemented at model level:
- A promotion window ends strictly after it starts.
- Percentage values live in [1, 100]; fixed amounts are integer cents.
- Codes are stored upper-cased, so look-ups are case-insensitive.
- An active code carries a discount, a bundle type, or both.
- Usage counters are only ever changed through conditional ``UPDATE``
  statements in the repositories (see ``increment_usage``).
"""

from __future__ import annotations

from datetime import datetime

import structlog
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from modules.core.models import BaseModel
from modules.promotions.constants import (
    BundleType,
    CodeDiscountKind,
    DiscountType,
)

logger = structlog.get_logger(__name__)


class PromotionQuerySet(models.QuerySet):
    def active_at(self, moment: datetime) -> PromotionQuerySet:
        """Enabled promotions whose window contains ``moment`` (both ends inclusive)."""
        return self.filter(is_active=True, starts_at__lte=moment, ends_at__gte=moment)


class Promotion(BaseModel):
    name = models.CharField(max_length=150)
    description = models.TextField(blank=True, default="")
    discount_type = models.CharField(max_length=20, choices=DiscountType.choices)
    # Percent for PERCENTAGE, cents for FIXED_AMOUNT, unused for BUNDLE.
    discount_value = models.PositiveIntegerField(default=0)
    bundle_type = models.CharField(
        max_length=5,
        choices=BundleType.choices,
        null=True,
        blank=True,
    )
    starts_at = models.DateTimeField()
    ends_at = models.DateTimeField()
    is_active = models.BooleanField(default=True)
    exclusive_with_codes = models.BooleanField(default=True)
    categories = models.ManyToManyField(
        "products.Category",
        related_name="promotions",
        blank=True,
    )
    max_uses = models.PositiveIntegerField(null=True, blank=True)
    max_uses_per_user = models.PositiveIntegerField(null=True, blank=True)
    current_uses = models.PositiveIntegerField(default=0)

    objects = PromotionQuerySet.as_manager()

    class Meta:
        db_table = "promotions"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["is_active", "starts_at", "ends_at"],
                name="promotions_window_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(ends_at__gt=models.F("starts_at")),
                name="promotions_ends_after_start",
            ),
        ]

    def clean(self) -> None:
        super().clean()
        errors = {}
        if self.starts_at and self.ends_at and self.ends_at <= self.starts_at:
            errors["ends_at"] = "The promotion must end after it starts."
        if self.discount_type == DiscountType.PERCENTAGE and not 1 <= self.discount_value <= 100:
            errors["discount_value"] = "Percentage must be between 1 and 100."
        if self.discount_type == DiscountType.FIXED_AMOUNT and self.discount_value < 1:
            errors["discount_value"] = "Fixed discount must be at least one cent."
        if self.discount_type == DiscountType.BUNDLE and not self.bundle_type:
            errors["bundle_type"] = "Bundle promotions need a bundle type."
        if errors:
            raise ValidationError(errors)

    def is_running(self, moment: datetime | None = None) -> bool:
        moment = moment or timezone.now()
        return self.is_active and self.starts_at <= moment <= self.ends_at

    def __str__(self) -> str:
        return self.name


class PromotionUsage(BaseModel):
    """One use of a promotion by one order."""

    promotion = models.ForeignKey(
        Promotion,
        on_delete=models.PROTECT,
        related_name="usages",
    )
    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="promotion_usages",
        null=True,
        blank=True,
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="promotion_usages",
        null=True,
        blank=True,
    )

    class Meta:
        db_table = "promotion_usages"
        ordering = ["-created_at"]


class PromotionalCode(BaseModel):
    code = models.CharField(max_length=50, unique=True)
    description = models.CharField(max_length=255, blank=True, default="")
    discount_kind = models.CharField(
        max_length=20,
        choices=CodeDiscountKind.choices,
        null=True,
        blank=True,
    )
    # Percent for PERCENTAGE, cents for FIXED_AMOUNT.
    discount_value = models.PositiveIntegerField(null=True, blank=True)
    bundle_type = models.CharField(
        max_length=5,
        choices=BundleType.choices,
        null=True,
        blank=True,
    )
    combinable = models.BooleanField(default=False)
    exclusive_with_promotions = models.BooleanField(default=True)
    starts_at = models.DateTimeField(null=True, blank=True)
    ends_at = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    max_uses = models.PositiveIntegerField(null=True, blank=True)
    max_uses_per_user = models.PositiveIntegerField(null=True, blank=True)
    current_uses = models.PositiveIntegerField(default=0)
    allowed_users = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        related_name="allowed_promotional_codes",
        blank=True,
    )

    class Meta:
        db_table = "promotional_codes"
        ordering = ["code"]

    @staticmethod
    def normalize(code: str) -> str:
        return code.strip().upper()

    @property
    def has_discount(self) -> bool:
        return bool(self.discount_kind and self.discount_value)

    def clean(self) -> None:
        super().clean()
        if self.code:
            self.code = self.normalize(self.code)
        if self.is_active and not (self.has_discount or self.bundle_type):
            raise ValidationError("An active code needs a discount or a bundle type.")
        if (
            self.discount_kind == CodeDiscountKind.PERCENTAGE
            and self.discount_value is not None
            and not 1 <= self.discount_value <= 100
        ):
            raise ValidationError({"discount_value": "Percentage must be between 1 and 100."})
        if self.starts_at and self.ends_at and self.ends_at <= self.starts_at:
            raise ValidationError({"ends_at": "The code must expire after it starts."})

    def save(self, *args, **kwargs) -> None:
        is_new = self._state.adding
        if self.code:
            self.code = self.normalize(self.code)
        super().save(*args, **kwargs)
        if is_new:
            logger.info("promo_code.created", code_id=str(self.id), code=self.code)

    def __str__(self) -> str:
        return self.code


class CodeRedemption(BaseModel):
    """One application of a promotional code to an order."""

    code = models.ForeignKey(
        PromotionalCode,
        on_delete=models.PROTECT,
        related_name="redemptions",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="code_redemptions",
        null=True,
        blank=True,
    )
    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="code_redemptions",
        null=True,
        blank=True,
    )
    discount_cents = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "code_redemptions"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["code", "user"], name="code_redemptions_user_idx"),
        ]
