"""Order domain exceptions.

Raised by the Service Layer and the state machine; the project exception
handler maps each base category to an HTTP status.
"""

from __future__ import annotations

from shared.domain.exceptions import ConcurrencyConflict, DomainValidationError, NotFoundError


class OrderNotFound(NotFoundError):
    """The requested order does not exist or has been soft-deleted."""


class OrderImmutable(DomainValidationError):
    """The order is in a terminal status and cannot be modified."""

    def __init__(self, status: str) -> None:
        super().__init__(f"Cannot modify an order in terminal status {status}.")
        self.status = status


class InvalidTransition(DomainValidationError):
    """The requested status change is not in the transition table."""

    def __init__(self, current: str, requested: str, detail: str | None = None) -> None:
        message = f"Transition not permitted, from {current} to {requested}."
        if detail:
            message = f"{message} {detail}"
        super().__init__(message)
        self.current = current
        self.requested = requested


class MissingTransitionData(DomainValidationError):
    """A transition that needs side data (e.g. tracking number) did not get it."""

    def __init__(self, requested: str, fields: list[str]) -> None:
        super().__init__(
            f"Transition to {requested} requires: {', '.join(fields)}."
        )
        self.fields = fields


class StaleOrderVersion(ConcurrencyConflict):
    """The order changed since it was read; re-read it and retry."""

    def __init__(self, order_id: str, expected_version: int) -> None:
        super().__init__(
            f"Order {order_id} was modified by another operation "
            f"(expected version {expected_version}). Reload it and try again."
        )
        self.order_id = order_id
        self.expected_version = expected_version


class ProductNotFound(NotFoundError):
    """A product referenced by a cart line does not exist."""


class ProductUnavailable(DomainValidationError):
    """A product referenced by a cart line is not for sale."""


class InsufficientStock(ConcurrencyConflict):
    """Not enough units on hand to fill a line of the order being approved."""

    def __init__(self, product_id: str, quantity: int) -> None:
        super().__init__(
            f"Product {product_id} does not have {quantity} units in stock."
        )
        self.product_id = product_id
        self.quantity = quantity
