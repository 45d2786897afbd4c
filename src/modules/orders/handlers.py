"""Event handlers for Orders domain events.

These are the notification collaborator's entry points: they receive
events from the outbox dispatcher after the transaction committed.
Delivery channels (e-mail, WebSocket push) plug in here.
"""

from __future__ import annotations

import structlog

from modules.orders.events import (
    OrderCancelled,
    OrderCreated,
    OrderDelivered,
    OrderPaymentRejected,
    OrderStatusChanged,
)
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)


class OrderCreatedHandler(IEventHandler[OrderCreated]):
    def handle(self, event: OrderCreated) -> None:
        logger.info(
            "notification.order_created",
            order_id=str(event.aggregate_id),
            order_number=event.order_number,
            total_cents=event.total_cents,
        )


class OrderStatusChangedHandler(IEventHandler[OrderStatusChanged]):
    def handle(self, event: OrderStatusChanged) -> None:
        logger.info(
            "notification.order_status_changed",
            order_id=str(event.aggregate_id),
            order_number=event.order_number,
            previous_status=event.previous_status,
            new_status=event.new_status,
            version=event.version,
        )


class OrderDeliveredHandler(IEventHandler[OrderDelivered]):
    def handle(self, event: OrderDelivered) -> None:
        logger.info(
            "notification.order_delivered",
            order_id=str(event.aggregate_id),
            order_number=event.order_number,
        )


class OrderCancelledHandler(IEventHandler[OrderCancelled]):
    def handle(self, event: OrderCancelled) -> None:
        logger.info(
            "notification.order_cancelled",
            order_id=str(event.aggregate_id),
            order_number=event.order_number,
            reason=event.reason,
        )


class OrderPaymentRejectedHandler(IEventHandler[OrderPaymentRejected]):
    def handle(self, event: OrderPaymentRejected) -> None:
        logger.info(
            "notification.order_payment_rejected",
            order_id=str(event.aggregate_id),
            order_number=event.order_number,
            reason=event.reason,
        )


order_created_handler = OrderCreatedHandler()
order_status_changed_handler = OrderStatusChangedHandler()
order_delivered_handler = OrderDeliveredHandler()
order_cancelled_handler = OrderCancelledHandler()
order_payment_rejected_handler = OrderPaymentRejectedHandler()
