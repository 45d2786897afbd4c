"""Unit tests for shared domain primitives: events, money helpers, errors."""

from __future__ import annotations

from dataclasses import FrozenInstanceError
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from modules.orders.events import OrderCreated, OrderStatusChanged
from shared.domain.events import DomainEvent
from shared.domain.exceptions import (
    ConcurrencyConflict,
    DomainError,
    DomainValidationError,
    ForbiddenError,
    NotFoundError,
)
from shared.domain.money import percent_of, round_half_up

pytestmark = pytest.mark.unit


class TestDomainEvent:
    def test_event_name_is_class_name(self):
        event = OrderCreated(aggregate_id=uuid4())
        assert event.event_name == "OrderCreated"
        assert isinstance(event.occurred_on, datetime)

    def test_events_are_immutable(self):
        event = OrderCreated(aggregate_id=uuid4())
        with pytest.raises(FrozenInstanceError):
            event.total_cents = 10

    def test_subclasses_register_by_name(self):
        assert DomainEvent.registry["OrderStatusChanged"] is OrderStatusChanged

    def test_payload_round_trip_keeps_identity(self):
        original = OrderStatusChanged(
            aggregate_id=uuid4(),
            previous_status="PENDING",
            new_status="PAYMENT_APPROVED",
            version=2,
        )
        payload = original.to_payload()
        payload["aggregate_id"] = str(payload["aggregate_id"])
        payload["event_id"] = str(payload["event_id"])
        payload["occurred_on"] = payload["occurred_on"].isoformat()

        rebuilt = DomainEvent.from_payload("OrderStatusChanged", payload)

        assert rebuilt == original

    def test_unknown_event_name(self):
        with pytest.raises(KeyError):
            DomainEvent.from_payload("NoSuchEvent", {})


class TestMoney:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [("0.5", 1), ("1.5", 2), ("2.5", 3), ("2.49", 2), ("-0.5", -1)],
    )
    def test_round_half_up(self, value, expected):
        assert round_half_up(Decimal(value)) == expected

    def test_percent_of(self):
        assert percent_of(9000, 2) == 180
        assert percent_of(999, 10) == 100
        assert percent_of(1005, Decimal("1.5")) == 15
        assert percent_of(0, 50) == 0


class TestErrorTaxonomy:
    @pytest.mark.parametrize(
        ("exc_class", "code"),
        [
            (DomainValidationError, "validation_error"),
            (NotFoundError, "not_found"),
            (ConcurrencyConflict, "concurrency_conflict"),
            (ForbiddenError, "forbidden"),
        ],
    )
    def test_codes(self, exc_class, code):
        assert exc_class.code == code
        assert issubclass(exc_class, DomainError)
