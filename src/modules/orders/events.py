"""Domain events for the Orders bounded context.

Every field has a default so events can be rebuilt from their outbox
payload by name (see ``DomainEvent.from_payload``).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class OrderCreated(DomainEvent):
    """Raised when checkout creates an order."""

    order_number: str = ""
    customer_email: str = ""
    total_cents: int = 0
    fulfillment_type: str = ""


@dataclass(frozen=True)
class OrderStatusChanged(DomainEvent):
    """Raised on every successful transition."""

    order_number: str = ""
    customer_email: str = ""
    previous_status: str = ""
    new_status: str = ""
    version: int = 0
    actor_id: Optional[str] = None
    actor_email: Optional[str] = None
    tracking_number: Optional[str] = None
    courier_name: Optional[str] = None
    reason: Optional[str] = None


@dataclass(frozen=True)
class OrderDelivered(DomainEvent):
    order_number: str = ""
    customer_email: str = ""


@dataclass(frozen=True)
class OrderCancelled(DomainEvent):
    order_number: str = ""
    customer_email: str = ""
    reason: Optional[str] = None


@dataclass(frozen=True)
class OrderPaymentRejected(DomainEvent):
    order_number: str = ""
    customer_email: str = ""
    reason: Optional[str] = None
