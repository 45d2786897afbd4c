"""Django ORM implementation of the payment gateway repository."""

from __future__ import annotations

from typing import List, Optional

from django.core.exceptions import ValidationError

from modules.payments.models import GatewayPriceRule, PaymentGateway
from modules.payments.repositories.interfaces import IPaymentGatewayRepository


class PaymentGatewayDjangoRepository(IPaymentGatewayRepository):
    def get_by_id(self, id: str) -> Optional[PaymentGateway]:
        try:
            return PaymentGateway.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def save(self, entity: PaymentGateway) -> PaymentGateway:
        entity.save()
        return entity

    def active_rules(self, gateway: PaymentGateway) -> List[GatewayPriceRule]:
        return list(
            GatewayPriceRule.objects.filter(gateway=gateway, is_active=True).order_by(
                "-priority", "created_at"
            )
        )
