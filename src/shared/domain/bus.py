"""Event bus contracts used by the outbox dispatcher.

Events reach handlers after the writing transaction has committed, and a
row that failed is delivered again on the next dispatch run, so handlers
must tolerate seeing the same event more than once.
"""

from __future__ import annotations

from typing import Generic, Protocol, Type, TypeVar

from shared.domain.events import DomainEvent

E = TypeVar("E", bound=DomainEvent, contravariant=True)


class IEventHandler(Protocol, Generic[E]):
    """Reacts to one kind of domain event (notifications, projections)."""

    def handle(self, event: E) -> None: ...


class IEventBus(Protocol):
    """Routes a published event to the handlers subscribed to its class."""

    def publish(self, event: DomainEvent) -> None: ...

    def subscribe(self, event_class: Type[E], handler: IEventHandler[E]) -> None: ...
