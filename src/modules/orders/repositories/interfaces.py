"""Order repository interface.

Extends ``IRepository[Order]`` with the operations the Order Management
Service needs: atomic creation with lines, the version-checked
compare-and-set write, the append-only audit trail, and the read queries
for the CMS (sales listing and dashboard).

The Service Layer depends exclusively on this contract (DIP).
"""

from __future__ import annotations

from abc import abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.orders.dtos import OrderFilters
    from modules.orders.models import Order, OrderAudit, OrderLineItem


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root."""

    @abstractmethod
    def create(self, order: "Order", lines: List["OrderLineItem"]) -> "Order":
        """Insert an order and its lines atomically."""

    @abstractmethod
    def exists(self, id: str) -> bool:
        """Whether a live order with this id exists."""

    @abstractmethod
    def compare_and_set(self, id: str, expected_version: int, changes: Dict[str, Any]) -> int:
        """Apply ``changes`` only if the stored version is ``expected_version``.

        Increments ``version`` by one.  Returns the number of rows written
        (0 when the version moved or the order is gone).
        """

    @abstractmethod
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
    ) -> "OrderAudit":
        """Append one audit entry."""

    @abstractmethod
    def list_audit(self, order_id: str) -> List["OrderAudit"]:
        """Audit trail of an order, newest first."""

    @abstractmethod
    def list_lines(self, order_id: str) -> List["OrderLineItem"]:
        """Line items of an order."""

    @abstractmethod
    def list_sales(self, filters: "OrderFilters", limit: int) -> Tuple[List["Order"], int]:
        """One page of orders (newest first) plus the unpaginated total."""

    @abstractmethod
    def dashboard_stats(self, start: datetime, end: datetime) -> Dict[str, int]:
        """Aggregates over orders created in ``[start, end)``."""

    @abstractmethod
    def save_events(self, order: "Order") -> int:
        """Write the order's pending domain events to the outbox."""
