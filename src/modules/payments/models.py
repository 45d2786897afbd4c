"""Payment gateways and their price rules.

Amounts are integer cents.  A rule carries either a fixed ``amount_cents``
or a ``percent``; when both are set the amount wins.
"""

from __future__ import annotations

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from modules.core.models import BaseModel
from modules.payments.constants import GatewayProvider, RuleAction, RuleScope


class PaymentGateway(BaseModel):
    name = models.CharField(max_length=100)
    provider = models.CharField(max_length=20, choices=GatewayProvider.choices)
    is_active = models.BooleanField(default=True)
    fees_fixed_cents = models.PositiveIntegerField(default=0)
    fees_percent = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal("0"),
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("100"))],
    )

    class Meta:
        db_table = "payment_gateways"
        ordering = ["name"]

    def __str__(self) -> str:
        return f"{self.name} ({self.provider})"


class GatewayPriceRule(BaseModel):
    gateway = models.ForeignKey(
        PaymentGateway,
        on_delete=models.CASCADE,
        related_name="rules",
    )
    scope = models.CharField(
        max_length=10,
        choices=RuleScope.choices,
        default=RuleScope.GLOBAL,
    )
    scope_id = models.UUIDField(null=True, blank=True)
    action = models.CharField(max_length=10, choices=RuleAction.choices)
    amount_cents = models.PositiveIntegerField(null=True, blank=True)
    percent = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("100"))],
    )
    priority = models.IntegerField(default=0)
    is_active = models.BooleanField(default=True)
    description = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        db_table = "gateway_price_rules"
        ordering = ["-priority", "created_at"]
        indexes = [
            models.Index(
                fields=["gateway", "is_active", "priority"],
                name="gateway_rules_lookup_idx",
            ),
        ]

    def clean(self) -> None:
        super().clean()
        if self.scope == RuleScope.GLOBAL and self.scope_id is not None:
            raise ValidationError({"scope_id": "Global rules cannot target an id."})
        if self.scope != RuleScope.GLOBAL and self.scope_id is None:
            raise ValidationError({"scope_id": "Scoped rules need a target id."})
        if not self.amount_cents and not self.percent:
            raise ValidationError("A rule needs an amount or a percentage.")

    def __str__(self) -> str:
        return f"{self.action} {self.scope} (priority {self.priority})"
