"""Optimistic concurrency on order status updates.

Two operators read the same order (same ``version``) and both submit a
transition.  Exactly one compare-and-set wins; the loser gets
``StaleOrderVersion`` and the final version is the initial one plus one.

The deterministic test interleaves the two writers by hand and runs on
every backend.  The threaded test needs real row-level concurrency and is
skipped on SQLite.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor

import django
import pytest
from django.db import connection
from django.test import TransactionTestCase

from modules.orders.constants import OrderStatus
from modules.orders.dtos import Actor, CreateOrderDTO, CreateOrderLineDTO, UpdateOrderStatusDTO
from modules.orders.exceptions import StaleOrderVersion
from modules.orders.models import Order, OrderAudit
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderManagementService
from modules.products.models import Product
from modules.products.repositories.django_repository import ProductDjangoRepository

logger = logging.getLogger(__name__)

NUM_WORKERS = 8


def _service() -> OrderManagementService:
    return OrderManagementService(
        order_repository=OrderDjangoRepository(),
        product_repository=ProductDjangoRepository(),
    )


@pytest.mark.integration
class TestInterleavedWriters:
    def test_second_writer_with_same_version_loses(self, make_order, actor):
        order = make_order()
        first_read = Order.objects.get(id=order.id)
        second_read = Order.objects.get(id=order.id)
        service = _service()

        service.update_order_status(
            UpdateOrderStatusDTO(
                order_id=order.id,
                new_status=OrderStatus.PAYMENT_APPROVED,
                actor=actor,
                expected_version=first_read.version,
            )
        )
        with pytest.raises(StaleOrderVersion):
            service.update_order_status(
                UpdateOrderStatusDTO(
                    order_id=order.id,
                    new_status=OrderStatus.CANCELLED,
                    actor=actor,
                    expected_version=second_read.version,
                )
            )

        order.refresh_from_db()
        assert order.version == 2
        assert order.status == OrderStatus.PAYMENT_APPROVED

    def test_write_between_read_and_update_loses(self, make_order, actor):
        """The row moves after the service read it: the CAS itself refuses."""
        order = make_order()
        repo = OrderDjangoRepository()
        service = OrderManagementService(
            order_repository=repo, product_repository=ProductDjangoRepository()
        )
        original_cas = repo.compare_and_set

        def racing_cas(id, expected_version, changes):
            Order.objects.filter(id=id).update(version=expected_version + 1)
            return original_cas(id, expected_version, changes)

        repo.compare_and_set = racing_cas

        with pytest.raises(StaleOrderVersion):
            service.update_order_status(
                UpdateOrderStatusDTO(
                    order_id=order.id,
                    new_status=OrderStatus.PAYMENT_APPROVED,
                    actor=actor,
                    expected_version=1,
                )
            )

        assert OrderAudit.objects.filter(order=order).count() == 1


@pytest.mark.integration
@pytest.mark.skipif(
    connection.vendor == "sqlite",
    reason="needs a database with row-level concurrency",
)
class TestConcurrentTransitions(TransactionTestCase):
    """Threads race the same transition on the same version."""

    def setUp(self):
        product = Product.objects.create(name="Race", slug="race", price_cents=1000, stock=10)
        self.order = _service().create_order(
            CreateOrderDTO(
                customer_email="race@example.com",
                lines=[CreateOrderLineDTO(product_id=product.id, quantity=1)],
            )
        )
        self.barrier = threading.Barrier(NUM_WORKERS)

    def _approve(self, worker: int) -> str:
        django.db.connections.close_all()
        actor = Actor(id=str(worker), email=f"worker{worker}@example.com")
        self.barrier.wait()
        try:
            _service().update_order_status(
                UpdateOrderStatusDTO(
                    order_id=self.order.id,
                    new_status=OrderStatus.PAYMENT_APPROVED,
                    actor=actor,
                    expected_version=1,
                )
            )
            return "success"
        except StaleOrderVersion:
            logger.warning("Worker %d lost the race (expected)", worker)
            return "conflict"
        finally:
            django.db.connections.close_all()

    def test_exactly_one_writer_wins(self):
        with ThreadPoolExecutor(max_workers=NUM_WORKERS) as pool:
            results = list(pool.map(self._approve, range(NUM_WORKERS)))

        self.assertEqual(results.count("success"), 1)
        self.assertEqual(results.count("conflict"), NUM_WORKERS - 1)

        self.order.refresh_from_db()
        self.assertEqual(self.order.version, 2)
        self.assertEqual(
            OrderAudit.objects.filter(order=self.order).count(),
            2,
        )
