"""Payment gateway repository interface."""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, List

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.payments.models import GatewayPriceRule, PaymentGateway


class IPaymentGatewayRepository(IRepository["PaymentGateway"]):
    @abstractmethod
    def active_rules(self, gateway: "PaymentGateway") -> List["GatewayPriceRule"]:
        """Active rules of ``gateway`` by descending priority."""
