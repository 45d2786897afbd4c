"""Order domain constants.

Status and fulfillment choices, terminal states, the write-once timestamp
field stamped when each status is first entered, and the status groups
used by the dashboard.  The legal transitions themselves live in
``state_machine.TRANSITIONS``.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = "PENDING", "Pending payment"
    PAYMENT_APPROVED = "PAYMENT_APPROVED", "Payment approved"
    PAYMENT_REJECTED = "PAYMENT_REJECTED", "Payment rejected"
    PREPARING = "PREPARING", "Preparing"
    READY_FOR_SHIPPING = "READY_FOR_SHIPPING", "Ready for shipping"
    READY_FOR_PICKUP = "READY_FOR_PICKUP", "Ready for pickup"
    IN_TRANSIT = "IN_TRANSIT", "In transit"
    DELIVERED = "DELIVERED", "Delivered"
    NOT_DELIVERED = "NOT_DELIVERED", "Not delivered"
    CANCELLED = "CANCELLED", "Cancelled"


class FulfillmentType(models.TextChoices):
    SHIPPING = "SHIPPING", "Shipping"
    PICKUP = "PICKUP", "Store pickup"


TERMINAL_STATES: frozenset[str] = frozenset(
    {
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
        OrderStatus.PAYMENT_REJECTED,
        OrderStatus.NOT_DELIVERED,
    }
)

TIMESTAMP_FIELDS: dict[str, str] = {
    OrderStatus.PAYMENT_APPROVED: "payment_approved_at",
    OrderStatus.PAYMENT_REJECTED: "payment_rejected_at",
    OrderStatus.PREPARING: "preparing_started_at",
    OrderStatus.READY_FOR_SHIPPING: "ready_for_shipping_at",
    OrderStatus.READY_FOR_PICKUP: "ready_for_pickup_at",
    OrderStatus.IN_TRANSIT: "shipped_at",
    OrderStatus.DELIVERED: "delivered_at",
    OrderStatus.NOT_DELIVERED: "not_delivered_at",
    OrderStatus.CANCELLED: "cancelled_at",
}

SHIPPING_FLOW: tuple[str, ...] = (
    OrderStatus.PENDING,
    OrderStatus.PAYMENT_APPROVED,
    OrderStatus.PREPARING,
    OrderStatus.READY_FOR_SHIPPING,
    OrderStatus.IN_TRANSIT,
    OrderStatus.DELIVERED,
)

PICKUP_FLOW: tuple[str, ...] = (
    OrderStatus.PENDING,
    OrderStatus.PAYMENT_APPROVED,
    OrderStatus.PREPARING,
    OrderStatus.READY_FOR_PICKUP,
    OrderStatus.DELIVERED,
)

# Orders counted as sales (and revenue) on the dashboard.
SALE_STATUSES: tuple[str, ...] = (
    OrderStatus.PAYMENT_APPROVED,
    OrderStatus.PREPARING,
    OrderStatus.READY_FOR_SHIPPING,
    OrderStatus.READY_FOR_PICKUP,
    OrderStatus.IN_TRANSIT,
    OrderStatus.DELIVERED,
)

# Refund targets; a confirmed (sale-status) order moving here gets its stock back.
REFUND_STATUSES: tuple[str, ...] = (
    OrderStatus.CANCELLED,
    OrderStatus.PAYMENT_REJECTED,
)

# Orders still waiting on the store.
OPEN_STATUSES: tuple[str, ...] = (
    OrderStatus.PENDING,
    OrderStatus.PAYMENT_APPROVED,
    OrderStatus.PREPARING,
    OrderStatus.READY_FOR_SHIPPING,
    OrderStatus.READY_FOR_PICKUP,
    OrderStatus.IN_TRANSIT,
)

ORDER_CREATED_ACTION = "ORDER_CREATED"

ORDER_NUMBER_MAX_RETRIES = 5


def status_change_action(previous: str, new: str) -> str:
    return f"STATUS_CHANGE_{previous}_TO_{new}"
