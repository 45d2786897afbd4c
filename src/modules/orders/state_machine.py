"""Order State Machine.

The legal transitions are data: ``TRANSITIONS`` maps
``(current_status, target_status)`` to a ``TransitionRule`` describing the
guard (fulfillment type, mandatory side data) and the effect (which request
fields are copied onto the order).  ``plan_transition`` is the single
dispatch function used to apply a change and ``available_transitions``
reads the same table, so the two can never disagree.

Terminal statuses (``DELIVERED``, ``CANCELLED``, ``PAYMENT_REJECTED``,
``NOT_DELIVERED``) have no outgoing edges.  Every non-terminal status may
move to ``CANCELLED``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from modules.orders.constants import (
    PICKUP_FLOW,
    SHIPPING_FLOW,
    TERMINAL_STATES,
    TIMESTAMP_FIELDS,
    FulfillmentType,
    OrderStatus,
)
from modules.orders.exceptions import InvalidTransition, MissingTransitionData, OrderImmutable


@dataclass(frozen=True)
class TransitionRequest:
    new_status: str
    tracking_number: Optional[str] = None
    courier_name: Optional[str] = None
    cancellation_reason: Optional[str] = None
    delivery_reason: Optional[str] = None
    rejection_reason: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class TransitionRule:
    # Only allowed for this fulfillment type (None: any).
    fulfillment_type: Optional[str] = None
    # Request fields that must be non-blank.
    requires: Tuple[str, ...] = ()
    # (request field, order field) pairs copied when present.
    captures: Tuple[Tuple[str, str], ...] = ()
    increments_delivery_attempts: bool = False

    def allows(self, fulfillment_type: str) -> bool:
        return self.fulfillment_type is None or self.fulfillment_type == fulfillment_type


@dataclass(frozen=True)
class TransitionPlan:
    previous_status: str
    new_status: str
    changes: Dict[str, Any] = field(default_factory=dict)
    reason: Optional[str] = None


_CANCEL = TransitionRule(captures=(("cancellation_reason", "cancellation_reason"),))

TRANSITIONS: Dict[Tuple[str, str], TransitionRule] = {
    (OrderStatus.PENDING, OrderStatus.PAYMENT_APPROVED): TransitionRule(),
    (OrderStatus.PENDING, OrderStatus.PAYMENT_REJECTED): TransitionRule(
        captures=(("rejection_reason", "rejection_reason"),),
    ),
    (OrderStatus.PENDING, OrderStatus.CANCELLED): _CANCEL,
    (OrderStatus.PAYMENT_APPROVED, OrderStatus.PREPARING): TransitionRule(),
    (OrderStatus.PAYMENT_APPROVED, OrderStatus.CANCELLED): _CANCEL,
    (OrderStatus.PREPARING, OrderStatus.READY_FOR_SHIPPING): TransitionRule(
        fulfillment_type=FulfillmentType.SHIPPING,
    ),
    (OrderStatus.PREPARING, OrderStatus.READY_FOR_PICKUP): TransitionRule(
        fulfillment_type=FulfillmentType.PICKUP,
    ),
    (OrderStatus.PREPARING, OrderStatus.CANCELLED): _CANCEL,
    (OrderStatus.READY_FOR_SHIPPING, OrderStatus.IN_TRANSIT): TransitionRule(
        requires=("tracking_number", "courier_name"),
        captures=(
            ("tracking_number", "tracking_number"),
            ("courier_name", "courier_name"),
            ("notes", "shipping_notes"),
        ),
    ),
    (OrderStatus.READY_FOR_SHIPPING, OrderStatus.CANCELLED): _CANCEL,
    (OrderStatus.READY_FOR_PICKUP, OrderStatus.DELIVERED): TransitionRule(),
    (OrderStatus.READY_FOR_PICKUP, OrderStatus.CANCELLED): _CANCEL,
    (OrderStatus.IN_TRANSIT, OrderStatus.DELIVERED): TransitionRule(),
    (OrderStatus.IN_TRANSIT, OrderStatus.NOT_DELIVERED): TransitionRule(
        captures=(("delivery_reason", "delivery_reason"),),
        increments_delivery_attempts=True,
    ),
    (OrderStatus.IN_TRANSIT, OrderStatus.CANCELLED): _CANCEL,
}


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATES


def available_transitions(status: str, fulfillment_type: str) -> List[str]:
    """Statuses reachable from ``status``, in table order."""
    if is_terminal(status):
        return []
    return [
        target
        for (source, target), rule in TRANSITIONS.items()
        if source == status and rule.allows(fulfillment_type)
    ]


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def plan_transition(order: Any, request: TransitionRequest, now: datetime) -> TransitionPlan:
    """Validate ``request`` against ``order`` and compute the field changes.

    ``order`` only needs ``status``, ``fulfillment_type``,
    ``delivery_attempts`` and the status timestamp attributes.  Nothing is
    written here; the caller applies ``changes`` with a version-checked
    update.

    Raises:
        OrderImmutable: the order is in a terminal status.
        InvalidTransition: the edge is not in the table or its fulfillment
            guard fails.
        MissingTransitionData: a mandatory request field is blank.
    """
    current = order.status
    target = request.new_status

    if is_terminal(current):
        raise OrderImmutable(current)

    rule = TRANSITIONS.get((current, target))
    if rule is None:
        raise InvalidTransition(current, target)
    if not rule.allows(order.fulfillment_type):
        raise InvalidTransition(
            current,
            target,
            f"Only available for {rule.fulfillment_type} orders.",
        )

    missing = [name for name in rule.requires if not _clean(getattr(request, name))]
    if missing:
        raise MissingTransitionData(target, missing)

    changes: Dict[str, Any] = {"status": target}

    timestamp_field = TIMESTAMP_FIELDS.get(target)
    if timestamp_field and getattr(order, timestamp_field, None) is None:
        changes[timestamp_field] = now

    reason = None
    for request_field, order_field in rule.captures:
        value = _clean(getattr(request, request_field))
        if value is not None:
            changes[order_field] = value
            if request_field.endswith("_reason"):
                reason = value

    if rule.increments_delivery_attempts:
        changes["delivery_attempts"] = (order.delivery_attempts or 0) + 1

    return TransitionPlan(
        previous_status=current,
        new_status=target,
        changes=changes,
        reason=reason,
    )


def expected_flow(fulfillment_type: str) -> Tuple[str, ...]:
    if fulfillment_type == FulfillmentType.PICKUP:
        return PICKUP_FLOW
    return SHIPPING_FLOW


def progress(status: str, fulfillment_type: str) -> int:
    """Completion percentage along the happy path; 0 off the path."""
    flow = expected_flow(fulfillment_type)
    if status not in flow:
        return 0
    return round(flow.index(status) * 100 / (len(flow) - 1))
