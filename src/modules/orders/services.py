"""Order Management Service (Use Cases).

Orchestrates checkout order creation, status transitions through the
state machine, and the read queries the CMS needs.  Write operations are
atomic: the service defines the unit-of-work boundary.

Rules enforced:
- Transitions are validated by ``state_machine.plan_transition`` before
  anything is written.
- The order row is written with a version-checked compare-and-set; a lost
  race raises ``StaleOrderVersion`` and is never retried here.
- Every successful transition appends an audit entry in the same
  transaction as the status change.
- Payment approval takes stock for every line and a refund of a confirmed
  order puts it back, both in the status-change transaction.
- Domain events go to the outbox in that transaction; dispatch is enqueued
  after commit and an enqueue failure is only logged.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

import structlog
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from modules.core.tasks import dispatch_outbox_events
from modules.orders.constants import (
    ORDER_CREATED_ACTION,
    REFUND_STATUSES,
    SALE_STATUSES,
    OrderStatus,
    status_change_action,
)
from modules.orders.dtos import (
    Actor,
    AvailableTransitionsDTO,
    CreateOrderDTO,
    DashboardStatsDTO,
    OrderFilters,
    OrderSnapshot,
    RejectOrderDTO,
    SalesPageDTO,
    UpdateOrderStatusDTO,
)
from modules.orders.events import (
    OrderCancelled,
    OrderCreated,
    OrderDelivered,
    OrderPaymentRejected,
    OrderStatusChanged,
)
from modules.orders.exceptions import (
    InsufficientStock,
    OrderNotFound,
    ProductNotFound,
    ProductUnavailable,
    StaleOrderVersion,
)
from modules.orders.models import Order, OrderAudit, OrderLineItem
from modules.orders.state_machine import (
    TransitionPlan,
    TransitionRequest,
    available_transitions,
    plan_transition,
    progress,
)
from modules.promotions.discounts import LineDiscount, resolve_line_discount
from modules.promotions.dtos import ApplyCodeDTO, CodeLineDTO
from modules.promotions.services import PromotionalCodeService, PromotionService

if TYPE_CHECKING:
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


class OrderManagementService:
    """Application service for Order use-cases.

    Receives repositories and collaborating services via constructor
    injection (DIP).
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        product_repository: IProductRepository,
        promotion_service: Optional[PromotionService] = None,
        code_service: Optional[PromotionalCodeService] = None,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self._order_repo = order_repository
        self._product_repo = product_repository
        self._promotion_service = promotion_service or PromotionService(clock=clock)
        self._code_service = code_service or PromotionalCodeService(clock=clock)
        self._clock = clock

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def create_order(self, dto: CreateOrderDTO) -> Order:
        """Price a cart and persist it as a PENDING order (version 1).

        Line pricing: liquidation, else running promotion, else list price.
        A promotional code only discounts lines without their own discount
        and goes through the enforcement path (exclusivity, caps).

        Raises:
            ProductNotFound: a product does not exist.
            ProductUnavailable: a product is not for sale.
            CodeBlockedByPromotion: the code is blocked by a cart product.
            CodeNotFound / CodeExpired / CodeUsageLimitReached: code checks.
        """
        log = logger.bind(customer_email=dto.customer_email, line_count=len(dto.lines))
        log.info("order.creation_started")

        product_ids = [str(line.product_id) for line in dto.lines]
        products = self._product_repo.get_many(product_ids)

        priced: List[tuple] = []
        for line in dto.lines:
            product = products.get(str(line.product_id))
            if product is None:
                raise ProductNotFound(f"Product {line.product_id} not found.")
            if not product.is_active:
                raise ProductUnavailable(f"Product {product.name} is not available.")
            priced.append((line, product, self._price_line(product, line.quantity)))

        subtotal = sum(discount.unit_price_cents * line.quantity for line, _, discount in priced)

        code_quote = None
        code_dto = None
        if dto.promotional_code:
            code_dto = ApplyCodeDTO(
                code=dto.promotional_code,
                product_ids=[line.product_id for line in dto.lines],
                user_id=dto.user_id,
                lines=[
                    CodeLineDTO(unit_price_cents=discount.unit_price_cents, quantity=line.quantity)
                    for line, _, discount in priced
                    if not discount.has_discount
                ],
            )
            code_quote = self._code_service.quote_code(code_dto)

        code_discount = code_quote.discount_cents if code_quote else 0
        points_discount = min(dto.points_discount_cents, max(0, subtotal - code_discount))
        total = max(0, subtotal - code_discount - points_discount)

        order = Order(
            user_id=dto.user_id,
            customer_email=dto.customer_email,
            fulfillment_type=dto.fulfillment_type,
            status=OrderStatus.PENDING,
            version=1,
            subtotal_cents=subtotal,
            code_discount_cents=code_discount,
            points_discount_cents=points_discount,
            total_cents=total,
            promotional_code_id=code_quote.code_id if code_quote else None,
        )
        lines = [
            OrderLineItem(
                product_id=product.id,
                product_name=product.name,
                quantity=line.quantity,
                size=line.size,
                color=line.color,
                original_unit_price_cents=discount.original_unit_price_cents,
                discount_cents=discount.discount_cents,
                unit_price_cents=discount.unit_price_cents,
                discount_source=discount.source,
                promotion_id=discount.promotion_id,
            )
            for line, product, discount in priced
        ]
        order = self._order_repo.create(order, lines)

        for promotion_id in sorted({str(d.promotion_id) for _, _, d in priced if d.promotion_id}):
            self._promotion_service.record_usage(
                promotion_id, order_id=str(order.id), user_id=dto.user_id
            )
        if code_dto is not None:
            self._code_service.redeem_code(code_dto, order_id=str(order.id))

        self._order_repo.add_audit(
            order_id=str(order.id),
            action=ORDER_CREATED_ACTION,
            new_status=OrderStatus.PENDING,
            actor_id=str(dto.user_id) if dto.user_id else "",
            actor_email=dto.customer_email,
            metadata={"version": order.version, "total_cents": total},
        )

        order.add_domain_event(
            OrderCreated(
                aggregate_id=order.id,
                order_number=order.order_number,
                customer_email=order.customer_email,
                total_cents=order.total_cents,
                fulfillment_type=order.fulfillment_type,
            )
        )
        self._order_repo.save_events(order)
        transaction.on_commit(self._dispatch_events)

        log.info(
            "order.checkout_completed",
            order_id=str(order.id),
            order_number=order.order_number,
            total_cents=total,
        )
        return self._order_repo.get_by_id(str(order.id)) or order

    @transaction.atomic
    def update_order_status(self, dto: UpdateOrderStatusDTO) -> Order:
        """Move an order to ``dto.new_status``.

        Raises:
            OrderNotFound: the order does not exist.
            OrderImmutable: the order is in a terminal status.
            InvalidTransition: the edge is not permitted.
            MissingTransitionData: tracking number or courier missing.
            StaleOrderVersion: the order changed since it was read.
            InsufficientStock: approving the payment would oversell a product.
        """
        order = self._get_order_or_raise(str(dto.order_id))
        log = logger.bind(
            order_id=str(order.id),
            current_status=order.status,
            new_status=str(dto.new_status),
            actor_id=dto.actor.id,
        )

        if dto.expected_version != order.version:
            log.warning(
                "order.stale_write",
                expected_version=dto.expected_version,
                current_version=order.version,
            )
            raise StaleOrderVersion(str(order.id), dto.expected_version)

        expected_version = order.version
        request = TransitionRequest(
            new_status=dto.new_status,
            tracking_number=dto.tracking_number,
            courier_name=dto.courier_name,
            cancellation_reason=dto.cancellation_reason,
            delivery_reason=dto.delivery_reason,
            rejection_reason=dto.rejection_reason,
            notes=dto.notes,
        )
        plan = plan_transition(order, request, self._clock())

        updated = self._order_repo.compare_and_set(str(order.id), expected_version, plan.changes)
        if updated == 0:
            if not self._order_repo.exists(str(order.id)):
                raise OrderNotFound(f"Order {order.id} not found.")
            log.warning("order.stale_write", expected_version=expected_version)
            raise StaleOrderVersion(str(order.id), expected_version)

        stock_restored = self._move_stock(str(order.id), plan)

        self._order_repo.add_audit(
            order_id=str(order.id),
            action=status_change_action(plan.previous_status, plan.new_status),
            previous_status=plan.previous_status,
            new_status=plan.new_status,
            actor_id=dto.actor.id,
            actor_email=dto.actor.email,
            notes=dto.notes or "",
            metadata={
                "version": expected_version + 1,
                "timestamp": self._clock(),
                "reason": plan.reason,
                "tracking_number": plan.changes.get("tracking_number"),
                "courier_name": plan.changes.get("courier_name"),
                "stock_restored": stock_restored,
            },
        )

        updated_order = self._get_order_or_raise(str(order.id))
        self._record_transition_events(updated_order, plan, dto.actor)
        self._order_repo.save_events(updated_order)
        transaction.on_commit(self._dispatch_events)

        log.info("order.status_updated", version=updated_order.version)
        return updated_order

    def reject_order(self, dto: RejectOrderDTO) -> Order:
        """Reject a pending payment; ``dto.reason`` is already non-blank."""
        return self.update_order_status(
            UpdateOrderStatusDTO(
                order_id=dto.order_id,
                new_status=OrderStatus.PAYMENT_REJECTED,
                actor=dto.actor,
                expected_version=dto.expected_version,
                rejection_reason=dto.reason,
                notes=dto.notes,
            )
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: str) -> Order:
        """Retrieve a single order by ID.

        Raises:
            OrderNotFound: if the order does not exist.
        """
        return self._get_order_or_raise(order_id)

    def get_available_transitions(self, order_id: str) -> AvailableTransitionsDTO:
        order = self._get_order_or_raise(order_id)
        return AvailableTransitionsDTO(
            order_id=order.id,
            current_status=order.status,
            fulfillment_type=order.fulfillment_type,
            version=order.version,
            available=available_transitions(order.status, order.fulfillment_type),
            progress=progress(order.status, order.fulfillment_type),
        )

    def get_order_audit(self, order_id: str) -> List[OrderAudit]:
        order = self._get_order_or_raise(order_id)
        return self._order_repo.list_audit(str(order.id))

    def get_sales(self, filters: OrderFilters) -> SalesPageDTO:
        limit = min(
            filters.limit or settings.ORDERS_SALES_DEFAULT_LIMIT,
            settings.ORDERS_SALES_MAX_LIMIT,
        )
        orders, total = self._order_repo.list_sales(filters, limit)
        return SalesPageDTO(
            orders=[OrderSnapshot.from_entity(order) for order in orders],
            total=total,
            limit=limit,
            offset=filters.offset,
        )

    def get_dashboard_stats(self) -> DashboardStatsDTO:
        now = timezone.localtime(self._clock())
        start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        stats = self._order_repo.dashboard_stats(start, start + timedelta(days=1))
        return DashboardStatsDTO(**stats)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_order_or_raise(self, order_id: str) -> Order:
        order = self._order_repo.get_by_id(order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def _price_line(self, product, quantity: int) -> LineDiscount:
        promotion = None
        if product.applies_promotion and product.promotion_id:
            promotion = self._promotion_service.get_running(str(product.promotion_id))
        return resolve_line_discount(
            product.price_cents,
            quantity,
            liquidation_percent=product.liquidation_percent if product.in_liquidation else 0,
            promotion=promotion,
        )

    def _move_stock(self, order_id: str, plan: TransitionPlan) -> bool:
        """Take stock on payment approval; give it back on a refund.

        Runs inside the status-change transaction, so a short product rolls
        the transition back.  Returns whether stock was restored.
        """
        approving = plan.new_status == OrderStatus.PAYMENT_APPROVED
        refunding = plan.previous_status in SALE_STATUSES and plan.new_status in REFUND_STATUSES
        if not (approving or refunding):
            return False

        quantities: Dict[str, int] = {}
        for line in self._order_repo.list_lines(order_id):
            key = str(line.product_id)
            quantities[key] = quantities.get(key, 0) + line.quantity

        for product_id in sorted(quantities):
            if refunding:
                self._product_repo.restore_stock(product_id, quantities[product_id])
            elif not self._product_repo.reserve_stock(product_id, quantities[product_id]):
                logger.warning(
                    "order.stock_short",
                    order_id=order_id,
                    product_id=product_id,
                    quantity=quantities[product_id],
                )
                raise InsufficientStock(product_id, quantities[product_id])
        return refunding

    def _record_transition_events(self, order: Order, plan: TransitionPlan, actor: Actor) -> None:
        common: Dict[str, object] = {
            "aggregate_id": order.id,
            "order_number": order.order_number,
            "customer_email": order.customer_email,
        }
        order.add_domain_event(
            OrderStatusChanged(
                **common,
                previous_status=plan.previous_status,
                new_status=plan.new_status,
                version=order.version,
                actor_id=actor.id,
                actor_email=actor.email,
                tracking_number=order.tracking_number or None,
                courier_name=order.courier_name or None,
                reason=plan.reason,
            )
        )
        if plan.new_status == OrderStatus.DELIVERED:
            order.add_domain_event(OrderDelivered(**common))
        elif plan.new_status == OrderStatus.CANCELLED:
            order.add_domain_event(OrderCancelled(**common, reason=plan.reason))
        elif plan.new_status == OrderStatus.PAYMENT_REJECTED:
            order.add_domain_event(OrderPaymentRejected(**common, reason=plan.reason))

    def _dispatch_events(self) -> None:
        """Enqueue outbox dispatch; runs after commit and never raises."""
        try:
            dispatch_outbox_events.delay()
        except Exception:
            logger.exception("order.event_dispatch_failed")
