"""Django ORM implementation of the Order repository.

Satisfies ``IOrderRepository`` using Django's QuerySet API.

Concurrency control on status updates is optimistic: ``compare_and_set``
issues a single ``UPDATE ... WHERE id = %s AND version = %s`` and reports
how many rows it touched.  No row lock is held between the read and the
write.
"""

from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count, F, Q, Sum
from django.utils import timezone

from modules.core.models import OutboxEvent
from modules.orders.constants import OPEN_STATUSES, SALE_STATUSES
from modules.orders.dtos import OrderFilters
from modules.orders.filters import OrderSalesFilter
from modules.orders.models import Order, OrderAudit, OrderLineItem
from modules.orders.repositories.interfaces import IOrderRepository
from shared.domain.exceptions import DomainValidationError

logger = structlog.get_logger(__name__)


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Create (aggregate root + children)
    # ------------------------------------------------------------------

    @transaction.atomic
    def create(self, order: Order, lines: List[OrderLineItem]) -> Order:
        order.save()
        for line in lines:
            line.order = order
        OrderLineItem.objects.bulk_create(lines)

        logger.info(
            "order.created",
            order_id=str(order.id),
            order_number=order.order_number,
            line_count=len(lines),
        )
        return order

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve a live order with its lines prefetched.

        Returns ``None`` for non-existent, soft-deleted or invalid IDs.
        """
        try:
            return (
                Order.objects.alive()
                .prefetch_related("lines")
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def exists(self, id: str) -> bool:
        try:
            return Order.objects.alive().filter(id=id).exists()
        except (ValueError, ValidationError):
            return False

    def list_sales(self, filters: OrderFilters, limit: int) -> Tuple[List[Order], int]:
        data: Dict[str, Any] = {"status": [str(status) for status in filters.statuses]}
        if filters.date_from is not None:
            data["date_from"] = filters.date_from
        if filters.date_to is not None:
            data["date_to"] = filters.date_to

        filterset = OrderSalesFilter(data=data, queryset=Order.objects.alive())
        if not filterset.is_valid():
            raise DomainValidationError(f"Invalid sales filters: {dict(filterset.errors)}")

        queryset = filterset.qs.order_by("-created_at", "-id")
        total = queryset.count()
        page = list(
            queryset.prefetch_related("lines")[filters.offset : filters.offset + limit]
        )
        return page, total

    def dashboard_stats(self, start: datetime, end: datetime) -> Dict[str, int]:
        today = Q(created_at__gte=start, created_at__lt=end)
        sales_today = today & Q(status__in=SALE_STATUSES)
        stats = Order.objects.alive().aggregate(
            sales_today=Count("id", filter=sales_today),
            revenue_today_cents=Sum("total_cents", filter=sales_today),
            orders_today=Count("id", filter=today),
            pending_orders=Count("id", filter=Q(status__in=OPEN_STATUSES)),
        )
        return {key: value or 0 for key, value in stats.items()}

    # ------------------------------------------------------------------
    # Conditional write
    # ------------------------------------------------------------------

    def compare_and_set(self, id: str, expected_version: int, changes: Dict[str, Any]) -> int:
        return (
            Order.objects.alive()
            .filter(id=id, version=expected_version)
            .update(
                **changes,
                version=F("version") + 1,
                updated_at=timezone.now(),
            )
        )

    # ------------------------------------------------------------------
    # Audit trail
    # ------------------------------------------------------------------

    def add_audit(
        self,
        order_id: str,
        action: str,
        new_status: str,
        previous_status: Optional[str] = None,
        actor_id: str = "",
        actor_email: str = "",
        notes: str = "",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> OrderAudit:
        entry = OrderAudit(
            order_id=order_id,
            action=action,
            previous_status=previous_status,
            new_status=new_status,
            actor_id=actor_id,
            actor_email=actor_email,
            notes=notes or "",
            metadata=_normalize_for_json(metadata or {}),
        )
        entry.save()
        logger.info(
            "order.audit_added",
            order_id=str(order_id),
            action=action,
        )
        return entry

    def list_audit(self, order_id: str) -> List[OrderAudit]:
        try:
            return list(OrderAudit.objects.filter(order_id=order_id).order_by("-created_at", "-id"))
        except (ValueError, ValidationError):
            return []

    def list_lines(self, order_id: str) -> List[OrderLineItem]:
        return list(OrderLineItem.objects.filter(order_id=order_id).order_by("created_at", "id"))

    # ------------------------------------------------------------------
    # Save / Delete (IRepository contract)
    # ------------------------------------------------------------------

    @transaction.atomic
    def save(self, entity: Order) -> Order:
        """Persist an order and flush its pending events to the outbox."""
        entity.save()
        self.save_events(entity)
        return entity

    def save_events(self, order: Order) -> int:
        events = order.domain_events
        for event in events:
            OutboxEvent.objects.create(
                event_type=event.event_name,
                aggregate_id=str(event.aggregate_id),
                payload=_serialize_event_payload(event),
                topic="orders",
            )
        order.clear_domain_events()
        logger.info("order.events_stored", order_id=str(order.id), event_count=len(events))
        return len(events)

    @transaction.atomic
    def delete(self, id: str) -> bool:
        """Soft-delete an order by ID."""
        order = self.get_by_id(id)
        if not order:
            return False
        order.delete()
        logger.info("order.soft_deleted", order_id=str(id))
        return True


def _serialize_event_payload(event: Any) -> Dict[str, Any]:
    data = asdict(event)
    normalized = _normalize_for_json(data)
    return json.loads(json.dumps(normalized))


def _normalize_for_json(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, list):
        return [_normalize_for_json(item) for item in value]
    if isinstance(value, dict):
        return {key: _normalize_for_json(val) for key, val in value.items()}
    return value
