"""Integration tests for the order lifecycle through OrderManagementService.

Covers:
- Happy paths for shipping and pickup orders.
- Version increments by exactly one per transition.
- Write-once timestamps and dispatch data persisted.
- Audit trail written in the same transaction as the status change.
- Terminal orders cannot be modified.
- Transition query reflects the status just written.
- Stock taken on payment approval and given back on refund.
"""

from __future__ import annotations

from unittest.mock import patch

import pytest

from modules.core.models import OutboxEvent
from modules.orders.constants import FulfillmentType, OrderStatus
from modules.orders.dtos import CreateOrderLineDTO, RejectOrderDTO, UpdateOrderStatusDTO
from modules.orders.exceptions import (
    InsufficientStock,
    InvalidTransition,
    MissingTransitionData,
    OrderImmutable,
    StaleOrderVersion,
)
from modules.orders.models import Order, OrderAudit

pytestmark = pytest.mark.integration


class TestHappyPaths:
    def test_shipping_flow(self, make_order, advance_order):
        order = make_order()

        order = advance_order(
            order,
            OrderStatus.PAYMENT_APPROVED,
            OrderStatus.PREPARING,
            OrderStatus.READY_FOR_SHIPPING,
            OrderStatus.IN_TRANSIT,
            OrderStatus.DELIVERED,
        )

        assert order.status == OrderStatus.DELIVERED
        assert order.version == 6
        assert order.tracking_number == "TRK-0001"
        assert order.courier_name == "Andreani"
        assert order.shipped_at is not None
        assert order.delivered_at >= order.shipped_at

    def test_pickup_flow_skips_transit(self, make_order, advance_order):
        order = make_order(fulfillment_type=FulfillmentType.PICKUP)

        order = advance_order(
            order,
            OrderStatus.PAYMENT_APPROVED,
            OrderStatus.PREPARING,
            OrderStatus.READY_FOR_PICKUP,
            OrderStatus.DELIVERED,
        )

        assert order.status == OrderStatus.DELIVERED
        assert order.ready_for_pickup_at is not None
        assert order.shipped_at is None

    def test_pickup_order_cannot_be_shipped(self, make_order, advance_order):
        order = advance_order(
            make_order(fulfillment_type=FulfillmentType.PICKUP),
            OrderStatus.PAYMENT_APPROVED,
            OrderStatus.PREPARING,
        )

        with pytest.raises(InvalidTransition):
            advance_order(order, OrderStatus.READY_FOR_SHIPPING)


class TestTransitionPersistence:
    def test_audit_trail_records_each_step(self, make_order, advance_order, actor):
        order = advance_order(make_order(), OrderStatus.PAYMENT_APPROVED, OrderStatus.PREPARING)

        entries = list(OrderAudit.objects.filter(order=order).order_by("created_at", "id"))

        assert [entry.action for entry in entries] == [
            "ORDER_CREATED",
            "STATUS_CHANGE_PENDING_TO_PAYMENT_APPROVED",
            "STATUS_CHANGE_PAYMENT_APPROVED_TO_PREPARING",
        ]
        assert entries[2].previous_status == OrderStatus.PAYMENT_APPROVED
        assert entries[2].actor_email == actor.email
        assert entries[2].metadata["version"] == 3

    def test_dispatch_without_tracking_changes_nothing(self, make_order, advance_order, order_service, actor):
        order = advance_order(
            make_order(),
            OrderStatus.PAYMENT_APPROVED,
            OrderStatus.PREPARING,
            OrderStatus.READY_FOR_SHIPPING,
        )
        audit_count = OrderAudit.objects.filter(order=order).count()

        with pytest.raises(MissingTransitionData):
            order_service.update_order_status(
                UpdateOrderStatusDTO(
                    order_id=order.id,
                    new_status=OrderStatus.IN_TRANSIT,
                    actor=actor,
                    expected_version=order.version,
                    tracking_number="TRK-1",
                )
            )

        order.refresh_from_db()
        assert order.status == OrderStatus.READY_FOR_SHIPPING
        assert order.version == 4
        assert OrderAudit.objects.filter(order=order).count() == audit_count

    def test_audit_failure_rolls_back_status_change(self, make_order, order_service, actor):
        order = make_order()

        with patch.object(
            order_service._order_repo, "add_audit", side_effect=RuntimeError("disk full")
        ):
            with pytest.raises(RuntimeError):
                order_service.update_order_status(
                    UpdateOrderStatusDTO(
                        order_id=order.id,
                        new_status=OrderStatus.PAYMENT_APPROVED,
                        actor=actor,
                        expected_version=1,
                    )
                )

        order.refresh_from_db()
        assert order.status == OrderStatus.PENDING
        assert order.version == 1

    def test_not_delivered_is_final_and_counts_attempt(self, make_order, advance_order, order_service, actor):
        order = advance_order(
            make_order(),
            OrderStatus.PAYMENT_APPROVED,
            OrderStatus.PREPARING,
            OrderStatus.READY_FOR_SHIPPING,
            OrderStatus.IN_TRANSIT,
        )
        order = order_service.update_order_status(
            UpdateOrderStatusDTO(
                order_id=order.id,
                new_status=OrderStatus.NOT_DELIVERED,
                actor=actor,
                expected_version=order.version,
                delivery_reason="Recipient absent",
            )
        )

        assert order.delivery_attempts == 1
        assert order.delivery_reason == "Recipient absent"
        with pytest.raises(OrderImmutable, match="NOT_DELIVERED"):
            advance_order(order, OrderStatus.IN_TRANSIT)

    def test_stale_expected_version_rejected(self, make_order, advance_order, order_service, actor):
        order = make_order()
        advance_order(order, OrderStatus.PAYMENT_APPROVED)

        with pytest.raises(StaleOrderVersion):
            order_service.update_order_status(
                UpdateOrderStatusDTO(
                    order_id=order.id,
                    new_status=OrderStatus.CANCELLED,
                    actor=actor,
                    expected_version=1,
                )
            )

        assert Order.objects.get(id=order.id).version == 2


class TestRejectAndCancel:
    def test_reject_pending_order(self, make_order, order_service, actor):
        order = make_order()

        order = order_service.reject_order(
            RejectOrderDTO(order_id=order.id, reason="Card declined", actor=actor, expected_version=1)
        )

        assert order.status == OrderStatus.PAYMENT_REJECTED
        assert order.rejection_reason == "Card declined"
        assert order.payment_rejected_at is not None

    def test_reject_after_approval_not_permitted(self, make_order, advance_order, order_service, actor):
        order = advance_order(make_order(), OrderStatus.PAYMENT_APPROVED)

        with pytest.raises(InvalidTransition):
            order_service.reject_order(
                RejectOrderDTO(
                    order_id=order.id,
                    reason="Too late",
                    actor=actor,
                    expected_version=order.version,
                )
            )

    def test_cancel_emits_events_to_outbox(self, make_order, order_service, actor):
        order = make_order()
        order_service.update_order_status(
            UpdateOrderStatusDTO(
                order_id=order.id,
                new_status=OrderStatus.CANCELLED,
                actor=actor,
                expected_version=1,
                cancellation_reason="Duplicate order",
            )
        )

        event_types = list(
            OutboxEvent.objects.filter(aggregate_id=str(order.id))
            .order_by("created_at", "id")
            .values_list("event_type", flat=True)
        )
        assert event_types == ["OrderCreated", "OrderStatusChanged", "OrderCancelled"]


class TestQueriesAfterWrite:
    def test_available_transitions_follow_new_status(self, make_order, advance_order, order_service):
        order = make_order()
        before = order_service.get_available_transitions(str(order.id))

        advance_order(order, OrderStatus.PAYMENT_APPROVED)
        after = order_service.get_available_transitions(str(order.id))

        assert OrderStatus.PAYMENT_APPROVED in before.available
        assert after.current_status == OrderStatus.PAYMENT_APPROVED
        assert after.available == [OrderStatus.PREPARING, OrderStatus.CANCELLED]
        assert after.version == 2

    def test_audit_query_newest_first(self, make_order, advance_order, order_service):
        order = advance_order(make_order(), OrderStatus.PAYMENT_APPROVED)

        entries = order_service.get_order_audit(str(order.id))

        assert [entry.action for entry in entries] == [
            "STATUS_CHANGE_PENDING_TO_PAYMENT_APPROVED",
            "ORDER_CREATED",
        ]


class TestStockMovement:
    def test_approval_takes_stock(self, make_order, advance_order, product):
        advance_order(make_order(quantity=2), OrderStatus.PAYMENT_APPROVED)

        product.refresh_from_db()
        assert product.stock == 98

    def test_lines_of_same_product_are_summed(self, make_order, advance_order, product):
        order = make_order(
            lines=[
                CreateOrderLineDTO(product_id=product.id, quantity=2, size="M"),
                CreateOrderLineDTO(product_id=product.id, quantity=3, size="L"),
            ]
        )

        advance_order(order, OrderStatus.PAYMENT_APPROVED)

        product.refresh_from_db()
        assert product.stock == 95

    def test_cancel_after_approval_restores_stock(self, make_order, advance_order, product):
        order = advance_order(
            make_order(quantity=2),
            OrderStatus.PAYMENT_APPROVED,
            OrderStatus.PREPARING,
            OrderStatus.CANCELLED,
        )

        product.refresh_from_db()
        assert product.stock == 100
        audit = OrderAudit.objects.get(
            order=order, action="STATUS_CHANGE_PREPARING_TO_CANCELLED"
        )
        assert audit.metadata["stock_restored"] is True

    def test_cancel_from_pending_leaves_stock(self, make_order, advance_order, product):
        order = advance_order(make_order(quantity=2), OrderStatus.CANCELLED)

        product.refresh_from_db()
        assert product.stock == 100
        audit = OrderAudit.objects.get(order=order, action="STATUS_CHANGE_PENDING_TO_CANCELLED")
        assert audit.metadata["stock_restored"] is False

    def test_reject_pending_leaves_stock(self, make_order, order_service, actor, product):
        order = make_order(quantity=2)

        order_service.reject_order(
            RejectOrderDTO(order_id=order.id, reason="Card declined", actor=actor, expected_version=1)
        )

        product.refresh_from_db()
        assert product.stock == 100

    def test_short_stock_blocks_approval(self, make_order, make_product, advance_order):
        scarce = make_product(stock=1)
        order = make_order(lines=[CreateOrderLineDTO(product_id=scarce.id, quantity=2)])

        with pytest.raises(InsufficientStock):
            advance_order(order, OrderStatus.PAYMENT_APPROVED)

        scarce.refresh_from_db()
        order.refresh_from_db()
        assert scarce.stock == 1
        assert order.status == OrderStatus.PENDING
        assert order.version == 1
        assert OrderAudit.objects.filter(order=order).count() == 1

    def test_short_line_keeps_other_lines_untouched(self, make_order, make_product, advance_order, product):
        scarce = make_product(stock=0)
        order = make_order(
            lines=[
                CreateOrderLineDTO(product_id=product.id, quantity=1),
                CreateOrderLineDTO(product_id=scarce.id, quantity=1),
            ]
        )

        with pytest.raises(InsufficientStock):
            advance_order(order, OrderStatus.PAYMENT_APPROVED)

        product.refresh_from_db()
        assert product.stock == 100
